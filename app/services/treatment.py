import logging
from typing import Any, Dict

from pydantic import ValidationError

from app.config import LLM_MODEL_TREATMENT, RESPONSE_LANGUAGE
from app.models import (
    StructuredTreatment,
    Treatment,
    TreatmentRequest,
    treatment_response_adapter,
)
from app.prompts import RECOMMEND_TREATMENT_PROMPT
from app.services.llm import InferenceError, generate_json, summarize_validation_error

logger = logging.getLogger(__name__)

# The model is asked for the structured shape; older shapes are still accepted
TREATMENT_SCHEMA = StructuredTreatment.model_json_schema(by_alias=True)


def parse_treatment(payload: Dict[str, Any]) -> Treatment:
    """Validate a raw treatment payload against every known shape and normalize it"""
    try:
        response = treatment_response_adapter.validate_python(payload)
    except ValidationError as e:
        logger.warning(f"Treatment response failed validation: {e}")
        raise InferenceError(
            f"Treatment response did not match the expected format ({summarize_validation_error(e)})"
        ) from e

    logger.info(f"Treatment response shape: {response.shape}")
    return response.to_treatment()


async def recommend_treatment(request: TreatmentRequest) -> Treatment:
    logger.info(f"Requesting treatment for: {request.disease_name}")

    prompt_text = RECOMMEND_TREATMENT_PROMPT.format(
        disease_name=request.disease_name,
        symptoms=request.symptoms,
        language=RESPONSE_LANGUAGE,
    )
    payload = await generate_json(
        prompt_text,
        TREATMENT_SCHEMA,
        model=LLM_MODEL_TREATMENT,
        task="treatment",
        not_configured_message="Treatment recommendation service not configured",
    )
    return parse_treatment(payload)
