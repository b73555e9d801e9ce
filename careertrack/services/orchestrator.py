"""
Analysis Orchestrator

Coordinates AI compatibility analysis for tracked jobs:
1. Trigger -> 2. In flight -> 3. Merge (or fail) -> 4. Idle

Implements:
- Per-job state machine (at most one request in flight per job)
- Background tasks so callers never wait on the AI
- Merge through the job controller, never into a private copy
- Non-fatal failures: logged, reported, retryable

Tracking is per job id rather than a single "currently analyzing" slot,
so two jobs analyzed at once both stay visible as in flight.
"""

import asyncio
import logging
from typing import Optional, List, Dict, Set, Callable, Protocol

from careertrack.core.errors import (
    CareerTrackError, ValidationError, ErrorReport, classify_error
)
from careertrack.core.schemas import AnalysisRequestState, AnalysisResult
from careertrack.services.gateways import AnalysisGateway

logger = logging.getLogger(__name__)


class AnalysisMergeTarget(Protocol):
    """Whoever owns the records. Returns False when the job is gone."""

    def merge_analysis(self, job_id: str, result: AnalysisResult) -> bool:
        ...


# Called on every state change, with the error for FAILED transitions
NotificationCallback = Callable[[str, AnalysisRequestState, Optional[ErrorReport]], None]


# ============================================================================
# State Machine
# ============================================================================

class AnalysisStateMachine:
    """
    Valid transitions for one job's analysis request.

    IDLE -> IN_FLIGHT
    IN_FLIGHT -> SUCCEEDED | FAILED
    SUCCEEDED -> IDLE
    FAILED -> IDLE
    """

    TRANSITIONS = {
        AnalysisRequestState.IDLE: [AnalysisRequestState.IN_FLIGHT],
        AnalysisRequestState.IN_FLIGHT: [AnalysisRequestState.SUCCEEDED, AnalysisRequestState.FAILED],
        AnalysisRequestState.SUCCEEDED: [AnalysisRequestState.IDLE],
        AnalysisRequestState.FAILED: [AnalysisRequestState.IDLE],
    }

    @classmethod
    def can_transition(cls, from_state: AnalysisRequestState,
                       to_state: AnalysisRequestState) -> bool:
        """Check if transition is valid."""
        return to_state in cls.TRANSITIONS.get(from_state, [])


# ============================================================================
# Orchestrator
# ============================================================================

class AnalysisOrchestrator:
    """
    Tracks in-flight analysis requests per job and merges their results.

    Terminal states (SUCCEEDED, FAILED) are only signals: they are reported
    and immediately replaced by IDLE. The durable result lives on the record.
    """

    def __init__(
        self,
        gateway: AnalysisGateway,
        merge_target: Optional[AnalysisMergeTarget] = None,
        notification_callback: Optional[NotificationCallback] = None
    ):
        """
        Initialize the orchestrator.

        Args:
            gateway: Analysis backend
            merge_target: Owner of the job records (usually bound later by
                          the JobCollectionController)
            notification_callback: Called on every state change
        """
        self.gateway = gateway
        self.merge_target = merge_target
        self.notification_callback = notification_callback or self._default_notification

        self._states: Dict[str, AnalysisRequestState] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._pending: Set[asyncio.Task] = set()
        self.last_error: Optional[ErrorReport] = None

    def _default_notification(self, job_id: str, state: AnalysisRequestState,
                              error: Optional[ErrorReport] = None):
        """Default notification handler (just logs)."""
        logger.debug(f"Analysis [{job_id}]: {state.value}")

    def bind(self, merge_target: AnalysisMergeTarget):
        """Attach the record owner results are merged into."""
        self.merge_target = merge_target

    # =========================================================================
    # Status
    # =========================================================================

    def status_of(self, job_id: str) -> AnalysisRequestState:
        """Current request state; jobs never triggered are IDLE."""
        return self._states.get(job_id, AnalysisRequestState.IDLE)

    def is_analyzing(self, job_id: str) -> bool:
        return self.status_of(job_id) == AnalysisRequestState.IN_FLIGHT

    def in_flight_ids(self) -> List[str]:
        return [
            job_id for job_id, state in self._states.items()
            if state == AnalysisRequestState.IN_FLIGHT
        ]

    def _transition(self, job_id: str, to_state: AnalysisRequestState,
                    error: Optional[ErrorReport] = None) -> bool:
        current = self.status_of(job_id)
        if not AnalysisStateMachine.can_transition(current, to_state):
            logger.warning(f"Invalid analysis transition for {job_id}: "
                           f"{current.value} -> {to_state.value}")
            return False

        if to_state == AnalysisRequestState.IDLE:
            self._states.pop(job_id, None)
        else:
            self._states[job_id] = to_state

        try:
            self.notification_callback(job_id, to_state, error)
        except Exception as e:
            logger.error(f"Analysis notification failed for {job_id}: {e}")
        return True

    # =========================================================================
    # Trigger
    # =========================================================================

    def trigger(self, job_id: str, job_description: Optional[str]) -> Optional[asyncio.Task]:
        """
        Start an analysis for a job unless one is already running.

        Must be called from a running event loop. The request runs as a
        background task; the task is returned so callers may await it.

        Returns:
            The scheduled task, or None if the trigger was rejected (empty
            description) or suppressed (already in flight).
        """
        if not job_description or not job_description.strip():
            error = ValidationError("A job description is required for analysis",
                                    field="jobDescription")
            self.last_error = ErrorReport.from_error(error, operation="analyze", job_id=job_id)
            logger.warning(f"Analysis for {job_id} rejected: empty description")
            return None

        if self.is_analyzing(job_id):
            logger.debug(f"Analysis for {job_id} already in flight, ignoring trigger")
            return None

        # raises RuntimeError outside a loop, before any state is touched
        loop = asyncio.get_running_loop()

        self._transition(job_id, AnalysisRequestState.IN_FLIGHT)
        task = loop.create_task(
            self._run(job_id, job_description),
            name=f"analysis-{job_id}"
        )
        self._tasks[job_id] = task
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        logger.info(f"Analysis started for job {job_id}")
        return task

    async def _run(self, job_id: str, job_description: str):
        task = asyncio.current_task()
        try:
            result = await self.gateway.analyze(job_id, job_description)
        except asyncio.CancelledError:
            if self._release(job_id, task):
                self._states.pop(job_id, None)
            raise
        except Exception as e:
            if self._release(job_id, task):
                self._fail(job_id, e)
            else:
                logger.info(f"Discarding failed analysis for removed job {job_id}")
            return

        if not self._release(job_id, task):
            # forget() ran while the request was out
            logger.info(f"Discarding analysis result for removed job {job_id}")
            return

        merged = self.merge_target.merge_analysis(job_id, result) if self.merge_target else False
        if not merged:
            logger.info(f"Job {job_id} no longer exists, analysis result dropped")
        else:
            logger.info(f"Analysis for job {job_id} merged (score {result.match_score})")

        self._transition(job_id, AnalysisRequestState.SUCCEEDED)
        self._transition(job_id, AnalysisRequestState.IDLE)

    def _release(self, job_id: str, task: Optional[asyncio.Task]) -> bool:
        """Drop the task entry if it is still ours. False means it was forgotten."""
        if self._tasks.get(job_id) is not task:
            return False
        del self._tasks[job_id]
        return True

    def _fail(self, job_id: str, exc: Exception):
        error = classify_error(exc)
        if not isinstance(exc, CareerTrackError):
            logger.exception(f"Unexpected error analyzing job {job_id}")
        else:
            logger.warning(f"Analysis failed for job {job_id}: {error.message}")

        report = ErrorReport.from_error(error, operation="analyze", job_id=job_id)
        self.last_error = report
        self._transition(job_id, AnalysisRequestState.FAILED, report)
        self._transition(job_id, AnalysisRequestState.IDLE)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def forget(self, job_id: str):
        """
        Drop all state for a job (it was deleted).

        The request itself is not cancelled; its result is discarded when
        it arrives.
        """
        self._states.pop(job_id, None)
        if self._tasks.pop(job_id, None) is not None:
            logger.info(f"Forgot in-flight analysis for job {job_id}")

    def clear_error(self):
        self.last_error = None

    async def drain(self):
        """Wait until no analysis request is outstanding."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
