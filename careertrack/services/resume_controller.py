"""
Resume Analysis Controller

Standalone resume analysis: submit text, keep the latest result, and
manage the history of past analyses. Follows the same rules as the job
side: one submission at a time, and a failure never clears the previous
result.
"""

import logging
from typing import Optional, List, Callable

from careertrack.core.config import get_settings, ResumeSettings
from careertrack.core.errors import CareerTrackError, ValidationError, ErrorReport, classify_error
from careertrack.core.schemas import ApplicationTab, ResumeAnalysis
from careertrack.services.gateways import ResumeGateway

logger = logging.getLogger(__name__)


class ResumeAnalysisController:
    """Owns the current resume result and the analysis history."""

    def __init__(
        self,
        gateway: ResumeGateway,
        resume_settings: Optional[ResumeSettings] = None,
        ui_state=None,
        confirm_callback: Optional[Callable[[ResumeAnalysis], bool]] = None
    ):
        self.gateway = gateway
        self.resume_settings = resume_settings or get_settings().resume
        self.ui_state = ui_state
        self.confirm_callback = confirm_callback

        self.result: Optional[ResumeAnalysis] = None
        self._history: List[ResumeAnalysis] = []
        self.analyzing: bool = False
        self.loading_history: bool = False
        self.error: Optional[ErrorReport] = None

    @property
    def history(self) -> List[ResumeAnalysis]:
        return list(self._history)

    def _report(self, exc: Exception, operation: str):
        error = classify_error(exc)
        if not isinstance(exc, CareerTrackError):
            logger.exception(f"Unexpected error during resume {operation}")
        else:
            logger.error(f"Resume {operation} failed: {error.message}")
        self.error = ErrorReport.from_error(error, operation=operation)

    async def submit(self, resume_text: str) -> Optional[ResumeAnalysis]:
        """
        Analyze resume text.

        Returns the new result, or None if the text was too short, a
        submission is already running, or the request failed.
        """
        if self.analyzing:
            logger.debug("Resume analysis already in flight, ignoring submit")
            return None

        text = (resume_text or "").strip()
        minimum = self.resume_settings.min_resume_length
        if len(text) < minimum:
            self._report(
                ValidationError(f"Please enter at least {minimum} characters of resume text",
                                field="resumeText"),
                "analyze"
            )
            return None

        self.error = None
        self.analyzing = True
        try:
            result = await self.gateway.submit(text)
        except Exception as e:
            self._report(e, "analyze")
            return None
        finally:
            self.analyzing = False

        self.result = result
        logger.info(f"Resume analyzed: score={result.score} ats={result.ats_score}")
        if self.ui_state is not None:
            self.ui_state.set_tab(ApplicationTab.RESULTS)

        await self.refresh_history()
        return result

    async def refresh_history(self) -> bool:
        """Reload history; keeps the old list if the request fails."""
        self.loading_history = True
        try:
            history = await self.gateway.history()
        except Exception as e:
            self._report(e, "history")
            return False
        finally:
            self.loading_history = False

        self._history = list(history)
        return True

    async def remove(self, resume_id: str) -> bool:
        """Delete a past analysis; clears the current result if it was that one."""
        entry = next((r for r in self._history if r.id == resume_id), None)
        if entry is None and self.result is not None and self.result.id == resume_id:
            entry = self.result
        if self.confirm_callback is not None and entry is not None and not self.confirm_callback(entry):
            return False

        self.error = None
        try:
            await self.gateway.delete(resume_id)
        except Exception as e:
            self._report(e, "delete")
            return False

        if self.result is not None and self.result.id == resume_id:
            self.result = None
        self._history = [r for r in self._history if r.id != resume_id]

        await self.refresh_history()
        return True
