from __future__ import annotations

import logging
import uuid
from typing import List, Optional, Union

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from jp_subtitles.common import REQUEST_ID, configure_logging
from jp_subtitles.extract import parse_srt, sanitize_file_name
from jp_subtitles.orchestrator import RequestOrchestrator
from jp_subtitles.settings import settings

APP_VERSION = "0.3.0"

# ---------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------
configure_logging(settings)
log = logging.getLogger("jp_subtitles.app")
relay_log = logging.getLogger("jp_subtitles.content")


# ---------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------
class SubtitleRequest(BaseModel):
    title: str
    session_id: Union[int, str] = Field(default="0", alias="sessionId")

    model_config = {"populate_by_name": True}


class LogRelay(BaseModel):
    message: str


class CueModel(BaseModel):
    start: float
    end: float
    text: str


class CuesResponse(BaseModel):
    fileName: Optional[str] = None
    displayName: Optional[str] = None
    cues: List[CueModel] = []


# ---------------------------------------------------------------------
# App + middleware
# ---------------------------------------------------------------------
app = FastAPI(title="Japanese Subtitles Resolver")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

orchestrator = RequestOrchestrator(cfg=settings)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    incoming = request.headers.get("x-request-id")
    rid = incoming or uuid.uuid4().hex[:16]
    token = REQUEST_ID.set(rid)
    try:
        response = await call_next(request)
    finally:
        REQUEST_ID.reset(token)
    response.headers["X-Request-ID"] = rid
    return response


@app.get("/healthz")
async def healthz() -> JSONResponse:
    return JSONResponse({"status": "ok", "version": APP_VERSION})


# ---------------------------------------------------------------------
# Subtitle search
# ---------------------------------------------------------------------
@app.post("/subtitles")
async def subtitles(payload: SubtitleRequest) -> JSONResponse:
    result = await orchestrator.handle(payload.title, payload.session_id)
    return JSONResponse(result.as_dict())


@app.post("/subtitles/cues", response_model=CuesResponse)
async def subtitle_cues(payload: SubtitleRequest) -> CuesResponse:
    result = await orchestrator.handle(payload.title, payload.session_id)
    if not result.file_name:
        return CuesResponse()
    cues = [CueModel(start=c.start, end=c.end, text=c.text) for c in parse_srt(result.text)]
    return CuesResponse(
        fileName=result.file_name,
        displayName=sanitize_file_name(result.file_name),
        cues=cues,
    )


@app.post("/log")
async def relay_log_message(payload: LogRelay) -> JSONResponse:
    relay_log.debug(payload.message)
    return JSONResponse({"text": "", "fileName": None})
