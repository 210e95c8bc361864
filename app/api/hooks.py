"""Webhook endpoint for GitHub and GitLab deliveries"""

import json
import logging
from pathlib import Path
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.models.base import get_db
from app.services.errors import PreconditionFailed, RecordNotFound
from app.services.events import detect_provider
from app.services.hook_service import GitHookService
from app.services.message_logger import MessageLogger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/git_hook", tags=["git-hook"])

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))


def _render_error(error: Exception, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"title": type(error).__name__, "message": str(error)},
    )


async def _read_payload(request: Request) -> Dict[str, Any]:
    """JSON body, or the JSON document in the ``payload`` form field."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
        form = await request.form()
        raw = form.get("payload") or "{}"
    else:
        raw = (await request.body()).decode("utf-8") or "{}"

    try:
        payload = json.loads(raw)
    except ValueError as e:
        raise PreconditionFailed(f"Payload is not valid JSON: {e}")
    if not isinstance(payload, dict):
        raise PreconditionFailed(f"Payload must be a JSON object, got {type(payload).__name__}")
    return payload


@router.get("", response_class=HTMLResponse)
@router.get("/", response_class=HTMLResponse, include_in_schema=False)
async def welcome(request: Request):
    """Describe how to point a webhook at this endpoint"""
    return templates.TemplateResponse(request, "welcome.html", {"hook_url": str(request.url)})


@router.post("")
@router.post("/", include_in_schema=False)
async def receive_hook(request: Request, db: Session = Depends(get_db)):
    """Process a webhook delivery; responds with the collected log lines"""
    messages = MessageLogger(logger)
    try:
        detected = detect_provider(request.headers)
        if detected is None:
            return []
        events, event_type = detected

        payload = await _read_payload(request)
        params = dict(request.query_params)
        service = GitHookService(db, messages)
        return await run_in_threadpool(service.handle, events, event_type, payload, params)
    except RecordNotFound as e:
        return _render_error(e, 404)
    except PreconditionFailed as e:
        return _render_error(e, 412)
