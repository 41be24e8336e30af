"""
Workflow state machine for one browser session.

idle -> image_loading -> diagnosing -> diagnosed -> recommending -> complete
Any step may end in error; reset() returns to idle from anywhere.

Starting a new image or resetting bumps the generation counter. Remote
calls are not cancelled; results for an older generation are dropped.
"""
import asyncio
import logging
from collections import OrderedDict
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Set

from app.config import AUTO_RECOMMEND, MAX_ACTIVE_WORKFLOWS
from app.models import CamelModel, Diagnosis, ErrorResult, Treatment
from app.services.actions import UNKNOWN_DIAGNOSIS_ERROR
from app.services.confidence import ConfidenceLevel, ConfidencePolicy
from app.services.history import HistoryStore
from app.services.pipeline import DiagnosisPipeline
from app.utils.image import ImageReadError, read_image_as_data_uri

logger = logging.getLogger(__name__)


class WorkflowState(str, Enum):
    IDLE = "idle"
    IMAGE_LOADING = "image_loading"
    DIAGNOSING = "diagnosing"
    DIAGNOSED = "diagnosed"
    RECOMMENDING = "recommending"
    COMPLETE = "complete"
    ERROR = "error"


BUSY_STATES = {WorkflowState.IMAGE_LOADING, WorkflowState.DIAGNOSING, WorkflowState.RECOMMENDING}


class WorkflowStateError(Exception):
    """An action was requested in a state that does not allow it"""


class WorkflowSnapshot(CamelModel):
    state: WorkflowState
    image_preview: Optional[str] = None
    diagnosis: Optional[Diagnosis] = None
    confidence_level: Optional[ConfidenceLevel] = None
    treatment: Optional[Treatment] = None
    error: Optional[str] = None
    updated_at: datetime


class PlantDoctorWorkflow:
    def __init__(
        self,
        pipeline: Optional[DiagnosisPipeline] = None,
        history: Optional[HistoryStore] = None,
        policy: Optional[ConfidencePolicy] = None,
        auto_recommend: bool = AUTO_RECOMMEND,
    ):
        self.pipeline = pipeline or DiagnosisPipeline()
        self.history = history
        self.policy = policy or ConfidencePolicy()
        self.auto_recommend = auto_recommend
        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        # Runs still in flight, including ones superseded by a reset
        self._background_tasks: Set[asyncio.Task] = set()
        self._clear()

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    def _clear(self):
        self.state = WorkflowState.IDLE
        self.image_preview: Optional[str] = None
        self.diagnosis: Optional[Diagnosis] = None
        self.treatment: Optional[Treatment] = None
        self.error: Optional[str] = None
        self.updated_at = datetime.now(timezone.utc)

    def _set_state(self, state: WorkflowState):
        logger.debug(f"Workflow {self.state.value} -> {state.value}")
        self.state = state
        self.updated_at = datetime.now(timezone.utc)

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _fail(self, generation: int, message: str):
        if not self._is_current(generation):
            return
        self.error = message
        self._set_state(WorkflowState.ERROR)

    @property
    def is_busy(self) -> bool:
        return self.state in BUSY_STATES

    def snapshot(self) -> WorkflowSnapshot:
        return WorkflowSnapshot(
            state=self.state,
            image_preview=self.image_preview,
            diagnosis=self.diagnosis,
            confidence_level=self.policy.categorize(self.diagnosis.confidence) if self.diagnosis else None,
            treatment=self.treatment,
            error=self.error,
            updated_at=self.updated_at,
        )

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def reset(self):
        """Clear preview, diagnosis, treatment and error unconditionally"""
        self._generation += 1
        self._task = None
        self._clear()
        logger.info("Workflow reset")

    def load_image(self, image_bytes: bytes, content_type: Optional[str] = None) -> Optional[int]:
        """Discard any previous result and read the upload.

        Returns the new generation when diagnosis may start, or None when the
        file could not be read (state is then ``error``).
        """
        self.reset()
        generation = self._generation
        self._set_state(WorkflowState.IMAGE_LOADING)

        try:
            data_uri = read_image_as_data_uri(image_bytes, content_type)
        except ImageReadError as e:
            logger.error(f"File read error: {e}")
            self._fail(generation, str(e))
            return None

        self.image_preview = data_uri
        self._set_state(WorkflowState.DIAGNOSING)
        return generation

    async def submit_image(self, image_bytes: bytes, content_type: Optional[str] = None) -> WorkflowSnapshot:
        """Run the whole workflow for an upload and return the final snapshot"""
        generation = self.load_image(image_bytes, content_type)
        if generation is not None:
            await self._run(generation, self.image_preview)
        return self.snapshot()

    def start_image(self, image_bytes: bytes, content_type: Optional[str] = None) -> WorkflowSnapshot:
        """Same as submit_image but runs the remote calls in a background task"""
        generation = self.load_image(image_bytes, content_type)
        if generation is not None:
            self._task = asyncio.create_task(self._run(generation, self.image_preview))
            self._background_tasks.add(self._task)
            self._task.add_done_callback(self._task_done)
        return self.snapshot()

    async def request_treatment(self) -> WorkflowSnapshot:
        """Run stage 2 by hand when auto-recommend is off"""
        if self.state != WorkflowState.DIAGNOSED or self.diagnosis is None:
            raise WorkflowStateError(f"Treatment can only be requested after a diagnosis (state: {self.state.value})")
        await self._recommend(self._generation, self.diagnosis)
        return self.snapshot()

    def _task_done(self, task: asyncio.Task):
        self._background_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is None:
            return
        logger.error(f"Workflow run failed: {error}", exc_info=error)
        if task is self._task:
            self._fail(self._generation, str(error) or UNKNOWN_DIAGNOSIS_ERROR)

    async def wait(self):
        """Wait for the background task started by start_image, if any"""
        if self._task is not None:
            # Failures are already reflected in the state by _task_done
            await asyncio.wait([self._task])

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _run(self, generation: int, data_uri: str):
        result = await self.pipeline.diagnose(data_uri)
        if not self._is_current(generation):
            logger.info("Dropping diagnosis for a discarded image")
            return

        if isinstance(result, ErrorResult):
            self._fail(generation, result.error)
            return

        self.diagnosis = result
        self._set_state(WorkflowState.DIAGNOSED)

        if self.auto_recommend:
            await self._recommend(generation, result)

    async def _recommend(self, generation: int, diagnosis: Diagnosis):
        self._set_state(WorkflowState.RECOMMENDING)
        result = await self.pipeline.recommend_for(diagnosis)
        if not self._is_current(generation):
            logger.info("Dropping treatment for a discarded diagnosis")
            return

        if isinstance(result, ErrorResult):
            # Diagnosis stays visible next to the error
            self._fail(generation, result.error)
            return

        self.treatment = result
        self._set_state(WorkflowState.COMPLETE)

        if self.history is not None:
            self.history.record(self.image_preview, diagnosis, result)


class WorkflowRegistry:
    """Workflows keyed by session id, oldest evicted past max_workflows"""

    def __init__(self, factory=PlantDoctorWorkflow, max_workflows: int = MAX_ACTIVE_WORKFLOWS):
        self._factory = factory
        self._max_workflows = max_workflows
        self._workflows: "OrderedDict[str, PlantDoctorWorkflow]" = OrderedDict()

    def get(self, session_id: str) -> PlantDoctorWorkflow:
        workflow = self._workflows.get(session_id)
        if workflow is None:
            workflow = self._factory()
            self._workflows[session_id] = workflow
            while len(self._workflows) > self._max_workflows:
                evicted, _ = self._workflows.popitem(last=False)
                logger.info(f"Evicted workflow for session {evicted[:8]}...")
        else:
            self._workflows.move_to_end(session_id)
        return workflow

    def __len__(self) -> int:
        return len(self._workflows)
