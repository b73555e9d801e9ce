"""
Pydantic schemas for jobs, analysis results and backend payloads.

These schemas ensure:
1. Backend payloads (camelCase, `_id`) are validated on the way in
2. Drafts are serialized with the backend's field names on the way out
3. A record never carries half an analysis
"""

import logging
from datetime import date, datetime
from typing import Optional, List, Dict, Any, Union
from enum import Enum
from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger(__name__)


# ============================================================================
# Enums for State Management
# ============================================================================

class JobStatus(str, Enum):
    """Where an application currently stands. Set by the user."""

    APPLIED = "Applied"
    INTERVIEWING = "Interviewing"
    REJECTED = "Rejected"
    OFFERED = "Offered"


class AnalysisRequestState(str, Enum):
    """Ephemeral state of the analysis request for one job."""

    IDLE = "idle"
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ApplicationTab(str, Enum):
    """Top-level tabs of the resume page."""

    ANALYZE = "analyze"
    HISTORY = "history"
    RESULTS = "results"


def _date_only(value: Any) -> Any:
    """Backends send full ISO timestamps; keep the calendar date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and "T" in value:
        return value.split("T")[0]
    return value


# ============================================================================
# Job Data Schemas
# ============================================================================

class JobAnalysis(BaseModel):
    """Skill-gap summary attached to a job after a successful analysis."""

    matching_skills: List[str] = Field(default_factory=list, alias="matchingSkills")
    missing_skills: List[str] = Field(default_factory=list, alias="missingSkills")
    recommendations: List[str] = Field(default_factory=list)

    class Config:
        populate_by_name = True

    def is_empty(self) -> bool:
        return not (self.matching_skills or self.missing_skills or self.recommendations)


class JobDraft(BaseModel):
    """Job form contents, as submitted to the backend on create/edit."""

    company: str = ""
    position: str = ""
    job_description: Optional[str] = Field(default=None, alias="jobDescription")
    status: JobStatus = JobStatus.APPLIED
    notes: Optional[str] = None
    applied_date: date = Field(default_factory=date.today, alias="appliedDate")

    class Config:
        populate_by_name = True

    @field_validator("applied_date", mode="before")
    @classmethod
    def normalize_applied_date(cls, value: Any) -> Any:
        return _date_only(value)

    def to_payload(self) -> Dict[str, Any]:
        """Serialize with backend field names."""
        return self.model_dump(mode="json", by_alias=True)


class JobRecord(BaseModel):
    """A tracked job application as stored by the backend."""

    id: str = Field(alias="_id")
    company: str
    position: str
    job_description: Optional[str] = Field(default=None, alias="jobDescription")
    status: JobStatus = JobStatus.APPLIED
    notes: Optional[str] = None
    applied_date: date = Field(default_factory=date.today, alias="appliedDate")

    # Analysis (set together or not at all)
    compatibility_score: Optional[int] = Field(
        default=None, ge=0, le=100, alias="compatibilityScore"
    )
    analysis: Optional[JobAnalysis] = None
    polished_resume: Optional[str] = Field(default=None, alias="polishedResume")

    class Config:
        populate_by_name = True
        frozen = True

    @field_validator("applied_date", mode="before")
    @classmethod
    def normalize_applied_date(cls, value: Any) -> Any:
        return _date_only(value)

    @model_validator(mode="before")
    @classmethod
    def drop_partial_analysis(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        score_keys = ("compatibilityScore", "compatibility_score")
        has_score = any(data.get(k) is not None for k in score_keys)
        has_analysis = data.get("analysis") is not None
        if has_score != has_analysis:
            logger.warning(
                f"Job {data.get('_id') or data.get('id')}: dropping partial analysis "
                f"(score={has_score}, analysis={has_analysis})"
            )
            data = {k: v for k, v in data.items() if k not in score_keys + ("analysis",)}
        return data

    @property
    def has_analysis(self) -> bool:
        return self.compatibility_score is not None

    def to_draft(self) -> JobDraft:
        """Editable fields, as used to prefill the edit form."""
        return JobDraft(
            company=self.company,
            position=self.position,
            job_description=self.job_description,
            status=self.status,
            notes=self.notes,
            applied_date=self.applied_date,
        )


class AnalysisResult(BaseModel):
    """Response of the job compatibility analysis endpoint."""

    match_score: int = Field(ge=0, le=100, alias="matchScore")
    matching_skills: List[str] = Field(default_factory=list, alias="matchingSkills")
    missing_skills: List[str] = Field(default_factory=list, alias="missingSkills")
    recommendations: List[str] = Field(default_factory=list)
    polished_resume: Optional[str] = Field(default=None, alias="polishedResume")

    class Config:
        populate_by_name = True


class JobStats(BaseModel):
    """Aggregate counts over the job list."""

    total: int = 0
    by_status: Dict[JobStatus, int] = Field(
        default_factory=lambda: {s: 0 for s in JobStatus}
    )

    @property
    def applied(self) -> int:
        return self.by_status[JobStatus.APPLIED]

    @property
    def interviewing(self) -> int:
        return self.by_status[JobStatus.INTERVIEWING]

    @property
    def rejected(self) -> int:
        return self.by_status[JobStatus.REJECTED]

    @property
    def offered(self) -> int:
        return self.by_status[JobStatus.OFFERED]


# ============================================================================
# Resume Analysis Schemas
# ============================================================================

class ResumeAnalysis(BaseModel):
    """A standalone resume analysis, as kept in the user's history."""

    id: str = Field(alias="_id")
    score: Optional[int] = None
    ats_score: Optional[int] = Field(default=None, alias="atsScore")
    suggestions: List[str] = Field(default_factory=list)
    grammar_fixes: Optional[Union[str, List[str]]] = Field(default=None, alias="grammarFixes")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    class Config:
        populate_by_name = True


# ============================================================================
# API Response Schemas
# ============================================================================

class APIResponse(BaseModel):
    """Standard backend response envelope."""

    success: bool
    message: Optional[str] = None
    data: Optional[Any] = None
    errors: Optional[List[str]] = None
