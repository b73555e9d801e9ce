"""
Backend Gateways

Contracts the controllers depend on, plus their HTTP implementations:
- RemoteJobGateway: CRUD on the job store
- AnalysisGateway: AI compatibility analysis of one job
- ResumeGateway: standalone resume analysis and its history

Each HTTP gateway validates payloads into schemas; a payload that does not
fit is reported as an UpstreamError, same as a failed request.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Any, Optional

from pydantic import ValidationError as SchemaError

from careertrack.core.api_client import BackendClient
from careertrack.core.errors import UpstreamError
from careertrack.core.schemas import (
    JobRecord, JobDraft, AnalysisResult, ResumeAnalysis
)

logger = logging.getLogger(__name__)


def _parse(model, data: Any, what: str):
    """Validate a backend payload, classifying schema failures as upstream errors."""
    try:
        return model.model_validate(data)
    except SchemaError as e:
        logger.error(f"Malformed {what} payload: {e}")
        raise UpstreamError(f"Malformed {what} returned by backend") from e


# ============================================================================
# Contracts
# ============================================================================

class RemoteJobGateway(ABC):
    """CRUD against the backend job store."""

    @abstractmethod
    async def list(self) -> List[JobRecord]:
        ...

    @abstractmethod
    async def create(self, draft: JobDraft) -> JobRecord:
        ...

    @abstractmethod
    async def update(self, job_id: str, draft: JobDraft) -> JobRecord:
        ...

    @abstractmethod
    async def delete(self, job_id: str) -> None:
        ...


class AnalysisGateway(ABC):
    """AI compatibility analysis for a single job."""

    @abstractmethod
    async def analyze(self, job_id: str, job_description: str) -> AnalysisResult:
        ...


class ResumeGateway(ABC):
    """Standalone resume analysis."""

    @abstractmethod
    async def submit(self, resume_text: str) -> ResumeAnalysis:
        ...

    @abstractmethod
    async def history(self) -> List[ResumeAnalysis]:
        ...

    @abstractmethod
    async def delete(self, resume_id: str) -> None:
        ...


# ============================================================================
# HTTP Implementations
# ============================================================================

class HttpJobGateway(RemoteJobGateway):
    """Job store over the backend's /api/jobs resource."""

    def __init__(self, client: BackendClient):
        self.client = client

    async def list(self) -> List[JobRecord]:
        data = await self.client.get("/api/jobs")
        if data is None:
            return []
        if not isinstance(data, list):
            raise UpstreamError("Job list payload is not a list")
        return [_parse(JobRecord, item, "job") for item in data]

    async def create(self, draft: JobDraft) -> JobRecord:
        data = await self.client.post("/api/jobs", json=draft.to_payload())
        job = _parse(JobRecord, data, "job")
        logger.info(f"Created job {job.id}: {job.company} - {job.position}")
        return job

    async def update(self, job_id: str, draft: JobDraft) -> JobRecord:
        data = await self.client.put(f"/api/jobs/{job_id}", json=draft.to_payload())
        return _parse(JobRecord, data, "job")

    async def delete(self, job_id: str) -> None:
        await self.client.delete(f"/api/jobs/{job_id}")
        logger.info(f"Deleted job {job_id}")


class HttpAnalysisGateway(AnalysisGateway):
    """Compatibility analysis via POST /api/resume/analyze-job."""

    def __init__(self, client: BackendClient, timeout: Optional[float] = None):
        self.client = client
        self.timeout = timeout

    async def analyze(self, job_id: str, job_description: str) -> AnalysisResult:
        data = await self.client.post(
            "/api/resume/analyze-job",
            json={"jobDescription": job_description, "jobId": job_id},
            timeout=self.timeout
        )
        return _parse(AnalysisResult, data, "analysis")


class HttpResumeGateway(ResumeGateway):
    """Resume analysis and history via /api/resume."""

    def __init__(self, client: BackendClient, timeout: Optional[float] = None):
        self.client = client
        self.timeout = timeout

    async def submit(self, resume_text: str) -> ResumeAnalysis:
        data = await self.client.post(
            "/api/resume/analyze",
            json={"resumeText": resume_text},
            timeout=self.timeout
        )
        return _parse(ResumeAnalysis, data, "resume analysis")

    async def history(self) -> List[ResumeAnalysis]:
        data = await self.client.get("/api/resume")
        return [_parse(ResumeAnalysis, item, "resume analysis") for item in data or []]

    async def delete(self, resume_id: str) -> None:
        await self.client.delete(f"/api/resume/{resume_id}")
