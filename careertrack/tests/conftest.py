"""
Shared fixtures: in-memory gateways and a wired workspace.

Run with: python -m pytest careertrack/tests -v
"""

import asyncio
import logging
from typing import Dict, List, Optional, Tuple

import pytest

from careertrack.core.config import Settings, AnalysisSettings, ResumeSettings
from careertrack.core.schemas import (
    JobRecord, JobDraft, AnalysisResult, ResumeAnalysis
)
from careertrack.services.gateways import RemoteJobGateway, AnalysisGateway, ResumeGateway
from careertrack.services.workspace import build_workspace

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(message)s')

LONG_DESCRIPTION = (
    "We are hiring a backend engineer to build and operate Python services "
    "on AWS. You will design REST APIs, own data pipelines, mentor junior "
    "engineers and work closely with product to ship features every week."
)


class FakeJobGateway(RemoteJobGateway):
    """In-memory job store. Put an exception in `failures[op]` to make it fail."""

    def __init__(self):
        self.records: Dict[str, JobRecord] = {}
        self.failures: Dict[str, Exception] = {}
        self.calls: List[Tuple[str, Optional[str]]] = []
        self._next_id = 1

    def seed(self, **fields) -> JobRecord:
        job_id = fields.pop("id", None) or f"job-{self._next_id}"
        self._next_id += 1
        record = JobRecord(id=job_id, **fields)
        self.records[record.id] = record
        return record

    def _maybe_fail(self, op: str):
        if op in self.failures:
            raise self.failures[op]

    async def list(self) -> List[JobRecord]:
        self.calls.append(("list", None))
        self._maybe_fail("list")
        return list(self.records.values())

    async def create(self, draft: JobDraft) -> JobRecord:
        self.calls.append(("create", None))
        self._maybe_fail("create")
        record = JobRecord(id=f"job-{self._next_id}", **draft.model_dump())
        self._next_id += 1
        self.records[record.id] = record
        return record

    async def update(self, job_id: str, draft: JobDraft) -> JobRecord:
        self.calls.append(("update", job_id))
        self._maybe_fail("update")
        # like the real backend, the response only echoes the edited fields
        record = JobRecord(id=job_id, **draft.model_dump())
        self.records[job_id] = record
        return record

    async def delete(self, job_id: str) -> None:
        self.calls.append(("delete", job_id))
        self._maybe_fail("delete")
        self.records.pop(job_id, None)


class FakeAnalysisGateway(AnalysisGateway):
    """Returns a fixed analysis. `hold()` keeps requests pending until `release()`."""

    def __init__(self, score: int = 82):
        self.score = score
        self.calls: List[Tuple[str, str]] = []
        self.failures: Dict[str, Exception] = {}
        self.gate: Optional[asyncio.Event] = None

    def hold(self):
        self.gate = asyncio.Event()

    def release(self):
        if self.gate is not None:
            self.gate.set()

    async def analyze(self, job_id: str, job_description: str) -> AnalysisResult:
        self.calls.append((job_id, job_description))
        if self.gate is not None:
            await self.gate.wait()
        if job_id in self.failures:
            raise self.failures[job_id]
        return AnalysisResult(
            match_score=self.score,
            matching_skills=["Python", "AWS"],
            missing_skills=["Kubernetes"],
            recommendations=["Highlight your API design work"],
            polished_resume=f"Polished resume for {job_id}",
        )


class FakeResumeGateway(ResumeGateway):
    """In-memory resume analysis history."""

    def __init__(self):
        self.entries: List[ResumeAnalysis] = []
        self.failures: Dict[str, Exception] = {}
        self.calls: List[str] = []
        self._next_id = 1

    async def submit(self, resume_text: str) -> ResumeAnalysis:
        self.calls.append("submit")
        if "submit" in self.failures:
            raise self.failures["submit"]
        entry = ResumeAnalysis(
            id=f"resume-{self._next_id}",
            score=74,
            ats_score=68,
            suggestions=["Quantify your impact"],
            grammar_fixes="None needed",
        )
        self._next_id += 1
        self.entries.insert(0, entry)
        return entry

    async def history(self) -> List[ResumeAnalysis]:
        self.calls.append("history")
        if "history" in self.failures:
            raise self.failures["history"]
        return list(self.entries)

    async def delete(self, resume_id: str) -> None:
        self.calls.append("delete")
        if "delete" in self.failures:
            raise self.failures["delete"]
        self.entries = [e for e in self.entries if e.id != resume_id]


@pytest.fixture
def job_gateway():
    return FakeJobGateway()


@pytest.fixture
def analysis_gateway():
    return FakeAnalysisGateway()


@pytest.fixture
def resume_gateway():
    return FakeResumeGateway()


@pytest.fixture
def settings():
    return Settings(
        analysis=AnalysisSettings(auto_analyze_min_length=20, analyze_on_update=False),
        resume=ResumeSettings(min_resume_length=50),
    )


@pytest.fixture
def notifications():
    """Records every analysis state change."""
    return []


@pytest.fixture
def workspace(job_gateway, analysis_gateway, resume_gateway, settings, notifications):
    def record(job_id, state, error=None):
        notifications.append((job_id, state, error))

    return build_workspace(
        job_gateway, analysis_gateway, resume_gateway,
        settings=settings, notification_callback=record
    )


@pytest.fixture
def long_description():
    return LONG_DESCRIPTION
