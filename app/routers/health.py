import logging
from fastapi import APIRouter

from app.config import LLM_MODEL_DIAGNOSIS, LLM_MODEL_TREATMENT
from app.dependencies import history_store, llm_client, workflow_registry

logger = logging.getLogger(__name__)

router = APIRouter()

VERSION = "1.0.0"


@router.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "version": VERSION,
        "history": history_store.stats() if history_store else {"status": "disabled"},
        "active_workflows": len(workflow_registry),
        "services": {
            "llm": bool(llm_client),
            "diagnosis_model": LLM_MODEL_DIAGNOSIS,
            "treatment_model": LLM_MODEL_TREATMENT,
        }
    }
