import logging
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Request
from pydantic import BeforeValidator

from app.config import DEFAULT_RATE_LIMIT, DIAGNOSE_RATE_LIMIT
from app.dependencies import limiter
from app.models import CamelModel
from app.services.actions import handle_diagnose, handle_recommend

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


# null, numbers or a missing body reach the handlers as text so that
# validation failures come back as {"error": ...} instead of a 422
LooseText = Annotated[str, BeforeValidator(_as_text)]


class DiagnoseBody(CamelModel):
    photo_data_uri: LooseText = ""


class RecommendBody(CamelModel):
    disease_name: LooseText = ""
    symptoms: LooseText = ""


@router.post("/diagnose")
@limiter.limit(DIAGNOSE_RATE_LIMIT)
async def diagnose(request: Request, body: Optional[DiagnoseBody] = None):
    body = body or DiagnoseBody()
    return await handle_diagnose(body.photo_data_uri)


@router.post("/recommend")
@limiter.limit(DEFAULT_RATE_LIMIT)
async def recommend(request: Request, body: Optional[RecommendBody] = None):
    body = body or RecommendBody()
    return await handle_recommend(body.disease_name, body.symptoms)
