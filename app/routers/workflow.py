import os
import uuid
import logging
from fastapi import APIRouter, File, HTTPException, Request, UploadFile
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from app.config import (
    AUTO_RECOMMEND,
    DEFAULT_RATE_LIMIT,
    DIAGNOSE_RATE_LIMIT,
    MAX_IMAGE_BYTES,
)
from app.dependencies import history_store, limiter, workflow_registry
from app.services.workflow import PlantDoctorWorkflow, WorkflowStateError

logger = logging.getLogger(__name__)

router = APIRouter()

templates_path = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), "templates")
templates = Jinja2Templates(directory=templates_path)


def get_workflow(request: Request) -> PlantDoctorWorkflow:
    session_id = request.session.get("workflow_id")
    if not session_id:
        session_id = uuid.uuid4().hex
        request.session["workflow_id"] = session_id
    return workflow_registry.get(session_id)


@router.get("/", response_class=HTMLResponse)
async def index(request: Request):
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "max_image_mb": MAX_IMAGE_BYTES // (1024 * 1024),
            "auto_recommend": AUTO_RECOMMEND,
        },
    )


@router.get("/api/workflow")
async def get_workflow_snapshot(request: Request):
    return get_workflow(request).snapshot()


@router.post("/api/workflow/image")
@limiter.limit(DIAGNOSE_RATE_LIMIT)
async def upload_image(request: Request, image: UploadFile = File(...), wait: bool = False):
    """
    Start a diagnosis for an uploaded image.
    Returns right away with state "diagnosing" unless wait=true, in which case
    the response carries the final state.
    """
    workflow = get_workflow(request)
    image_bytes = await image.read()
    logger.info(f"Image upload: {image.filename} ({len(image_bytes)} bytes, {image.content_type})")

    if wait:
        return await workflow.submit_image(image_bytes, image.content_type)
    return workflow.start_image(image_bytes, image.content_type)


@router.post("/api/workflow/treatment")
@limiter.limit(DEFAULT_RATE_LIMIT)
async def request_treatment(request: Request):
    workflow = get_workflow(request)
    try:
        return await workflow.request_treatment()
    except WorkflowStateError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/api/workflow/reset")
async def reset_workflow(request: Request):
    workflow = get_workflow(request)
    workflow.reset()
    return workflow.snapshot()


@router.get("/api/history")
@limiter.limit(DEFAULT_RATE_LIMIT)
async def list_history(request: Request, limit: int = 20):
    if not history_store:
        raise HTTPException(status_code=503, detail="History is disabled")
    entries = history_store.list_entries(limit=max(limit, 0))
    return {"backend": history_store.backend, "entries": entries}


@router.delete("/api/history")
async def clear_history(request: Request):
    if not history_store:
        raise HTTPException(status_code=503, detail="History is disabled")
    history_store.clear()
    return {"status": "success", "message": "History cleared"}
