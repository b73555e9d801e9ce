"""
UI State Controller

Local, never-persisted view state:
- which jobs are collapsed
- which job is open in the analysis modal
- the active tab
- the job form (new or editing)

Selection is stored as a job id and resolved through the job controller
on every read, so an analysis merged while the modal is open shows up
without reopening it.
"""

import logging
from typing import Optional, Dict, List, Any

from careertrack.core.errors import ErrorKind, ErrorReport
from careertrack.core.schemas import ApplicationTab, JobDraft, JobRecord
from careertrack.services.job_controller import JobCollectionController

logger = logging.getLogger(__name__)


class UIStateController:
    """View state on top of a JobCollectionController."""

    def __init__(self, controller: JobCollectionController):
        self.controller = controller
        self.controller.on_refresh(self._reset_collapsed)

        self._collapsed: Dict[str, bool] = {}
        self.selected_job_id: Optional[str] = None
        self.active_tab: ApplicationTab = ApplicationTab.ANALYZE

        # Form
        self.show_form: bool = False
        self.editing_id: Optional[str] = None
        self.form: JobDraft = JobDraft()
        self.form_error: Optional[ErrorReport] = None

    # =========================================================================
    # Collapse
    # =========================================================================

    def _reset_collapsed(self, jobs):
        self._collapsed = {job.id: True for job in jobs}

    def is_collapsed(self, job_id: str) -> bool:
        return self._collapsed.get(job_id, True)

    def set_collapsed(self, job_id: str, collapsed: bool):
        self._collapsed[job_id] = collapsed

    def toggle_collapsed(self, job_id: str) -> bool:
        """Flip a job's collapse state; returns the new value."""
        collapsed = not self.is_collapsed(job_id)
        self._collapsed[job_id] = collapsed
        return collapsed

    def expanded_ids(self) -> List[str]:
        return [job_id for job_id in self.controller.ids if not self.is_collapsed(job_id)]

    # =========================================================================
    # Analysis modal
    # =========================================================================

    def open_analysis(self, job_id: str):
        self.selected_job_id = job_id

    def close_analysis(self):
        self.selected_job_id = None

    @property
    def selected_job(self) -> Optional[JobRecord]:
        """Latest state of the selected job, or None if it no longer exists."""
        if self.selected_job_id is None:
            return None
        return self.controller.get(self.selected_job_id)

    @property
    def show_analysis_modal(self) -> bool:
        return self.selected_job is not None

    # =========================================================================
    # Tabs
    # =========================================================================

    def set_tab(self, tab: ApplicationTab):
        self.active_tab = ApplicationTab(tab)

    # =========================================================================
    # Job form
    # =========================================================================

    def open_new_form(self):
        self.form = JobDraft()
        self.editing_id = None
        self.form_error = None
        self.show_form = True

    def start_edit(self, job_id: str) -> bool:
        """Prefill the form from a record. False if the job is unknown."""
        job = self.controller.get(job_id)
        if job is None:
            logger.warning(f"Cannot edit unknown job {job_id}")
            return False
        self.form = job.to_draft()
        self.editing_id = job_id
        self.form_error = None
        self.show_form = True
        return True

    def update_form(self, **fields: Any):
        self.form = JobDraft.model_validate({**self.form.model_dump(), **fields})

    def reset_form(self):
        self.form = JobDraft()
        self.editing_id = None
        self.form_error = None
        self.show_form = False

    async def submit_form(self) -> Optional[JobRecord]:
        """
        Create or update from the form.

        On success the form is reset. On failure it stays open; validation
        errors are also attached to the form for inline display.
        """
        if self.editing_id:
            job = await self.controller.update(self.editing_id, self.form)
        else:
            job = await self.controller.create(self.form)

        if job is not None:
            self.reset_form()
            return job

        error = self.controller.error
        if error is not None and error.kind == ErrorKind.VALIDATION:
            self.form_error = error
        return None
