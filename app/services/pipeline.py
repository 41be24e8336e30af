import logging
from typing import Awaitable, Callable, Optional, Union

from pydantic import BaseModel

from app.models import Diagnosis, ErrorResult, Treatment, TreatmentRequest
from app.services.actions import handle_diagnose, handle_recommend

logger = logging.getLogger(__name__)

DiagnoseStep = Callable[[str], Awaitable[Union[Diagnosis, ErrorResult]]]
RecommendStep = Callable[[str, str], Awaitable[Union[Treatment, ErrorResult]]]


class PipelineResult(BaseModel):
    diagnosis: Optional[Diagnosis] = None
    treatment: Optional[Treatment] = None
    error: Optional[str] = None


class DiagnosisPipeline:
    """Two-stage task sequence: image -> diagnosis -> treatment.

    Stage 2 only runs after stage 1 succeeds and receives exactly
    ``TreatmentRequest.from_diagnosis(diagnosis)`` as its input.
    """

    def __init__(
        self,
        diagnose: DiagnoseStep = handle_diagnose,
        recommend: RecommendStep = handle_recommend,
    ):
        self._diagnose = diagnose
        self._recommend = recommend

    async def diagnose(self, photo_data_uri: str) -> Union[Diagnosis, ErrorResult]:
        return await self._diagnose(photo_data_uri)

    async def recommend_for(self, diagnosis: Diagnosis) -> Union[Treatment, ErrorResult]:
        request = TreatmentRequest.from_diagnosis(diagnosis)
        return await self._recommend(request.disease_name, request.symptoms)

    async def run(self, photo_data_uri: str) -> PipelineResult:
        diagnosis = await self.diagnose(photo_data_uri)
        if isinstance(diagnosis, ErrorResult):
            return PipelineResult(error=diagnosis.error)

        treatment = await self.recommend_for(diagnosis)
        if isinstance(treatment, ErrorResult):
            logger.warning(f"Pipeline stopped after diagnosis: {treatment.error}")
            return PipelineResult(diagnosis=diagnosis, error=treatment.error)

        return PipelineResult(diagnosis=diagnosis, treatment=treatment)
