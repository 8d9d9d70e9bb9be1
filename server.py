#!/usr/bin/env python3
from __future__ import annotations

import logging
import os

import uvicorn

from api.main import app

if __name__ == "__main__":
    logging.basicConfig(
        level=os.environ.get("PAPERLAB_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host=os.environ.get("PAPERLAB_HOST", "127.0.0.1"), port=int(os.environ.get("PAPERLAB_PORT", "8000")))
