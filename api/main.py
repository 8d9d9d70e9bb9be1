from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.deps import get_session
from api.routers import documents, highlights, notes, reading_list, references
from paperlab.session import PersistenceError
from paperlab.store import StoreError


@asynccontextmanager
async def lifespan(app: FastAPI):
    session = get_session()
    await session.start()
    yield
    await session.close()


app = FastAPI(title="Paperlab API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PersistenceError)
async def _persistence_error(request: Request, exc: PersistenceError):
    return JSONResponse(status_code=502, content={"detail": str(exc), "operation": exc.operation})


@app.exception_handler(StoreError)
async def _store_error(request: Request, exc: StoreError):
    return JSONResponse(status_code=502, content={"detail": str(exc)})


app.include_router(documents.router)
app.include_router(highlights.router)
app.include_router(notes.router)
app.include_router(references.router)
app.include_router(reading_list.router)
