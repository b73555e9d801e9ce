"""
Job Collection Controller

Single source of truth for the tracked job list and its sync with the
backend job store. Every write to the list goes through here, including
analysis results coming back from the orchestrator.

Failures never escape: they are classified and stored in one error slot
that the presentation layer reads. A failed call leaves the list exactly
as it was.
"""

import logging
from typing import Optional, List, Dict, Callable, Tuple, Union, Any

from careertrack.core.config import get_settings, AnalysisSettings
from careertrack.core.errors import (
    CareerTrackError, ValidationError, ErrorReport, classify_error
)
from careertrack.core.merge import merge_update, apply_analysis
from careertrack.core.schemas import (
    JobRecord, JobDraft, JobStats, JobStatus, AnalysisResult
)
from careertrack.services.gateways import RemoteJobGateway
from careertrack.services.orchestrator import AnalysisOrchestrator

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[JobRecord], bool]
RefreshListener = Callable[[List[JobRecord]], None]


def validate_draft(draft: JobDraft):
    """Company and position are required before anything is sent."""
    if not draft.company or not draft.company.strip():
        raise ValidationError("Company is required", field="company")
    if not draft.position or not draft.position.strip():
        raise ValidationError("Position is required", field="position")


class JobCollectionController:
    """
    Owns the job list.

    Reads (jobs, get, stats, error) are synchronous over state that the
    async mutators update.
    """

    def __init__(
        self,
        gateway: RemoteJobGateway,
        orchestrator: AnalysisOrchestrator,
        analysis_settings: Optional[AnalysisSettings] = None,
        confirm_callback: Optional[ConfirmCallback] = None
    ):
        """
        Initialize the controller.

        Args:
            gateway: Backend job store
            orchestrator: Analysis orchestrator; bound to this controller
            analysis_settings: Auto-analysis threshold and options
            confirm_callback: Asked before a delete; None means confirmed
        """
        self.gateway = gateway
        self.orchestrator = orchestrator
        self.orchestrator.bind(self)
        self.analysis_settings = analysis_settings or get_settings().analysis
        self.confirm_callback = confirm_callback

        self._jobs: List[JobRecord] = []
        self._refresh_listeners: List[RefreshListener] = []
        self.error: Optional[ErrorReport] = None
        self.loading: bool = False
        self.loaded: bool = False

    # =========================================================================
    # Reads
    # =========================================================================

    @property
    def jobs(self) -> Tuple[JobRecord, ...]:
        """Snapshot of the current list."""
        return tuple(self._jobs)

    @property
    def ids(self) -> List[str]:
        return [job.id for job in self._jobs]

    def get(self, job_id: str) -> Optional[JobRecord]:
        index = self._index_of(job_id)
        return self._jobs[index] if index is not None else None

    def stats(self) -> JobStats:
        """Counts by status plus total, derived fresh from the list."""
        by_status = {status: 0 for status in JobStatus}
        for job in self._jobs:
            by_status[job.status] += 1
        return JobStats(total=len(self._jobs), by_status=by_status)

    @property
    def has_error(self) -> bool:
        return self.error is not None

    def clear_error(self):
        self.error = None

    def on_refresh(self, listener: RefreshListener):
        """Register a callback run after every successful refresh."""
        self._refresh_listeners.append(listener)

    def _index_of(self, job_id: str) -> Optional[int]:
        for i, job in enumerate(self._jobs):
            if job.id == job_id:
                return i
        return None

    def _report(self, exc: Exception, operation: str, job_id: Optional[str] = None):
        error = classify_error(exc)
        if not isinstance(exc, CareerTrackError):
            logger.exception(f"Unexpected error during {operation}")
        else:
            logger.error(f"{operation} failed: {error.message}")
        self.error = ErrorReport.from_error(error, operation=operation, job_id=job_id)

    @staticmethod
    def _as_draft(draft: Union[JobDraft, Dict[str, Any]]) -> JobDraft:
        if isinstance(draft, JobDraft):
            return draft
        return JobDraft.model_validate(draft)

    def _should_analyze(self, description: Optional[str]) -> bool:
        return bool(description) and len(description) > self.analysis_settings.auto_analyze_min_length

    # =========================================================================
    # Mutators
    # =========================================================================

    async def refresh(self) -> bool:
        """
        Replace the local list with the backend's.

        On failure the previous list stays in place and the error slot is set.
        """
        self.error = None
        self.loading = True
        try:
            jobs = await self.gateway.list()
        except Exception as e:
            self._report(e, "refresh")
            return False
        finally:
            self.loading = False

        self._jobs = list(jobs)
        self.loaded = True
        logger.info(f"Loaded {len(self._jobs)} jobs")

        for listener in self._refresh_listeners:
            listener(self.jobs)
        return True

    async def create(self, draft: Union[JobDraft, Dict[str, Any]]) -> Optional[JobRecord]:
        """
        Submit a new job. Appends the stored record and, for a substantial
        description, starts its compatibility analysis.
        """
        self.error = None
        try:
            draft = self._as_draft(draft)
            validate_draft(draft)
        except ValidationError as e:
            self._report(e, "create")
            return None
        except ValueError as e:
            self._report(ValidationError(str(e)), "create")
            return None

        try:
            job = await self.gateway.create(draft)
        except Exception as e:
            self._report(e, "create")
            return None

        index = self._index_of(job.id)
        if index is None:
            self._jobs.append(job)
        else:
            # a refresh finished first and already brought it in
            self._jobs[index] = job

        if self._should_analyze(draft.job_description):
            self.orchestrator.trigger(job.id, draft.job_description)

        return job

    async def update(self, job_id: str, draft: Union[JobDraft, Dict[str, Any]]) -> Optional[JobRecord]:
        """
        Submit an edit and replace the record. Score, analysis and polished
        resume keep their local values whatever the response carries.
        """
        self.error = None
        try:
            draft = self._as_draft(draft)
            validate_draft(draft)
            if self._index_of(job_id) is None:
                raise ValidationError(f"Unknown job {job_id}", field="id")
        except ValidationError as e:
            self._report(e, "update", job_id)
            return None
        except ValueError as e:
            self._report(ValidationError(str(e)), "update", job_id)
            return None

        try:
            incoming = await self.gateway.update(job_id, draft)
        except Exception as e:
            self._report(e, "update", job_id)
            return None

        index = self._index_of(job_id)
        if index is None:
            logger.info(f"Job {job_id} was removed while its update was in flight")
            return None

        job = merge_update(self._jobs[index], incoming)
        self._jobs[index] = job

        if self.analysis_settings.analyze_on_update and self._should_analyze(draft.job_description):
            self.orchestrator.trigger(job_id, draft.job_description)

        return job

    async def remove(self, job_id: str) -> bool:
        """
        Delete a job after confirmation. Any in-flight analysis for it is
        forgotten; its result will be dropped when it arrives.
        """
        self.error = None
        job = self.get(job_id)
        if job is None:
            self._report(ValidationError(f"Unknown job {job_id}", field="id"), "delete", job_id)
            return False

        if self.confirm_callback is not None and not self.confirm_callback(job):
            logger.debug(f"Delete of {job_id} not confirmed")
            return False

        try:
            await self.gateway.delete(job_id)
        except Exception as e:
            self._report(e, "delete", job_id)
            return False

        index = self._index_of(job_id)
        if index is not None:
            del self._jobs[index]
        self.orchestrator.forget(job_id)
        return True

    def merge_analysis(self, job_id: str, result: AnalysisResult) -> bool:
        """Entry point for analysis results. False if the job is gone."""
        index = self._index_of(job_id)
        if index is None:
            return False
        self._jobs[index] = apply_analysis(self._jobs[index], result)
        return True

    # =========================================================================
    # Analysis passthrough
    # =========================================================================

    def analyze(self, job_id: str):
        """Manually (re)start the analysis of a job from its stored description."""
        job = self.get(job_id)
        if job is None:
            self._report(ValidationError(f"Unknown job {job_id}", field="id"), "analyze", job_id)
            return None
        return self.orchestrator.trigger(job_id, job.job_description)
