"""
Request orchestration.
Validates raw input, runs the inference flows and turns every failure into
an ``ErrorResult`` so callers always get data back, never an exception.
"""
import logging
from typing import Union

from pydantic import ValidationError

from app.models import (
    DiagnoseDiseaseInput,
    Diagnosis,
    ErrorResult,
    Treatment,
    TreatmentRequest,
)
from app.services import disease_detection, treatment

logger = logging.getLogger(__name__)

MISSING_RECOMMEND_INPUT = "Disease name and symptoms are required."
UNKNOWN_DIAGNOSIS_ERROR = "An unknown error occurred during diagnosis."
UNKNOWN_RECOMMEND_ERROR = "An unknown error occurred while getting recommendations."


async def handle_diagnose(photo_data_uri: str) -> Union[Diagnosis, ErrorResult]:
    try:
        validated = DiagnoseDiseaseInput(photo_data_uri=photo_data_uri)
        return await disease_detection.diagnose_disease(validated)
    except ValidationError as e:
        logger.error(f"Diagnosis error: {e}")
        messages = ", ".join(err["msg"] for err in e.errors())
        return ErrorResult(error=f"Invalid input: {messages}")
    except Exception as e:
        logger.error(f"Diagnosis error: {e}", exc_info=True)
        return ErrorResult(error=str(e) or UNKNOWN_DIAGNOSIS_ERROR)


async def handle_recommend(disease_name: str, symptoms: str) -> Union[Treatment, ErrorResult]:
    if not (disease_name or "").strip() or not (symptoms or "").strip():
        return ErrorResult(error=MISSING_RECOMMEND_INPUT)

    try:
        request = TreatmentRequest(disease_name=disease_name, symptoms=symptoms)
        return await treatment.recommend_treatment(request)
    except Exception as e:
        logger.error(f"Recommendation error: {e}", exc_info=True)
        return ErrorResult(error=str(e) or UNKNOWN_RECOMMEND_ERROR)
