from __future__ import annotations

import asyncio
import json
import time
from collections.abc import AsyncGenerator
from typing import Any, Callable

from starlette.responses import StreamingResponse


async def sse_generator(
    poll_fn: Callable[[], dict[str, Any]],
    *,
    interval: float = 0.15,
    done_key: str = "done",
    timeout_s: float | None = None,
) -> AsyncGenerator[str, None]:
    started = time.monotonic()
    while True:
        data = poll_fn()
        if timeout_s is not None and not data.get(done_key) and time.monotonic() - started > timeout_s:
            data = {**data, done_key: True, "timed_out": True}
        yield f"data: {json.dumps(data, ensure_ascii=False, default=str)}\n\n"
        if data.get(done_key):
            return
        await asyncio.sleep(interval)


def sse_response(generator: AsyncGenerator[str, None]) -> StreamingResponse:
    return StreamingResponse(
        generator,
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
