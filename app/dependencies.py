import logging
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.config import HISTORY_ENABLED, RATE_LIMIT_ENABLED
from app.services.history import HistoryStore, init_redis
from app.services.llm import llm_client
from app.services.workflow import PlantDoctorWorkflow, WorkflowRegistry

logger = logging.getLogger(__name__)

# Shared rate limiter (registered on app.state in main)
limiter = Limiter(key_func=get_remote_address, enabled=RATE_LIMIT_ENABLED)

# History of completed workflows
history_store = None
if HISTORY_ENABLED:
    history_store = HistoryStore(redis_client=init_redis())
    logger.info(f"History initialized ({history_store.backend})")


def new_workflow() -> PlantDoctorWorkflow:
    return PlantDoctorWorkflow(history=history_store)


# One workflow per browser session
workflow_registry = WorkflowRegistry(factory=new_workflow)

__all__ = ["limiter", "history_store", "llm_client", "workflow_registry", "new_workflow"]
