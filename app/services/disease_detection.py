import logging

from pydantic import ValidationError

from app.config import LLM_MODEL_DIAGNOSIS, RESPONSE_LANGUAGE
from app.models import DiagnoseDiseaseInput, Diagnosis
from app.prompts import DIAGNOSE_DISEASE_PROMPT
from app.services.llm import InferenceError, generate_json, summarize_validation_error

logger = logging.getLogger(__name__)

DIAGNOSIS_SCHEMA = Diagnosis.model_json_schema(by_alias=True)


async def diagnose_disease(data: DiagnoseDiseaseInput) -> Diagnosis:
    """Diagnose a plant disease from a photo with a vision model.

    The function:
    1. Builds the pathologist prompt in the configured response language.
    2. Sends it with the image data URI and the Diagnosis JSON schema.
    3. Validates the reply against ``Diagnosis``.

    Single attempt; any failure raises ``InferenceError``.
    """
    logger.info("Starting plant disease diagnosis")

    prompt_text = DIAGNOSE_DISEASE_PROMPT.format(language=RESPONSE_LANGUAGE)
    payload = await generate_json(
        prompt_text,
        DIAGNOSIS_SCHEMA,
        model=LLM_MODEL_DIAGNOSIS,
        image_url=data.photo_data_uri,
        task="diagnosis",
        not_configured_message="Disease detection service not configured",
    )

    try:
        result = Diagnosis.model_validate(payload)
    except ValidationError as e:
        logger.warning(f"Diagnosis response failed validation: {e}")
        raise InferenceError(
            f"Diagnosis response did not match the expected format ({summarize_validation_error(e)})"
        ) from e

    logger.info(f"✓ Diagnosis: {result.disease_name} (confidence {result.confidence:.2f})")
    return result
