"""
Test the job schemas and merge rules.
"""

import logging
from datetime import date

from careertrack.core.merge import merge_update, apply_analysis
from careertrack.core.schemas import (
    JobRecord, JobDraft, JobAnalysis, JobStatus, AnalysisResult, ResumeAnalysis
)

logger = logging.getLogger(__name__)


def _analyzed_job(**overrides) -> JobRecord:
    fields = dict(
        id="job-1",
        company="Acme",
        position="Engineer",
        job_description="Python services",
        compatibility_score=70,
        analysis=JobAnalysis(matching_skills=["Python"], missing_skills=["Go"],
                             recommendations=["Learn Go"]),
        polished_resume="Old polished resume",
    )
    fields.update(overrides)
    return JobRecord(**fields)


def test_job_record_from_backend_payload():
    """Backend payloads use _id, camelCase and full timestamps."""
    job = JobRecord.model_validate({
        "_id": "64f0c2",
        "company": "Acme",
        "position": "Engineer",
        "jobDescription": "Build things",
        "status": "Interviewing",
        "appliedDate": "2024-03-05T00:00:00.000Z",
        "compatibilityScore": 82,
        "analysis": {
            "matchingSkills": ["Python"],
            "missingSkills": [],
            "recommendations": ["Ship it"],
        },
        "polishedResume": "Tailored",
    })

    assert job.id == "64f0c2"
    assert job.status == JobStatus.INTERVIEWING
    assert job.applied_date == date(2024, 3, 5)
    assert job.compatibility_score == 82
    assert job.analysis.matching_skills == ["Python"]
    assert job.has_analysis
    logger.info("Backend payload parsing: PASS")


def test_partial_analysis_is_dropped():
    """A score without an analysis (or the reverse) never reaches a record."""
    score_only = JobRecord.model_validate({
        "_id": "1", "company": "Acme", "position": "Engineer", "compatibilityScore": 50,
    })
    analysis_only = JobRecord.model_validate({
        "_id": "2", "company": "Acme", "position": "Engineer",
        "analysis": {"matchingSkills": ["Python"]},
    })

    for job in (score_only, analysis_only):
        assert job.compatibility_score is None
        assert job.analysis is None


def test_draft_payload_uses_backend_names():
    draft = JobDraft(company="Acme", position="Engineer", job_description="desc",
                     applied_date=date(2024, 1, 2))
    payload = draft.to_payload()

    assert payload == {
        "company": "Acme",
        "position": "Engineer",
        "jobDescription": "desc",
        "status": "Applied",
        "notes": None,
        "appliedDate": "2024-01-02",
    }


def test_draft_defaults():
    draft = JobDraft()
    assert draft.status == JobStatus.APPLIED
    assert draft.applied_date == date.today()


def test_merge_update_keeps_local_analysis():
    """An edit response without analysis fields keeps the local ones."""
    existing = _analyzed_job()
    incoming = JobRecord(id="job-1", company="Acme", position="Senior Engineer",
                         status=JobStatus.OFFERED)

    merged = merge_update(existing, incoming)

    assert merged.position == "Senior Engineer"
    assert merged.status == JobStatus.OFFERED
    assert merged.compatibility_score == 70
    assert merged.analysis == existing.analysis
    assert merged.polished_resume == "Old polished resume"


def test_merge_update_ignores_server_analysis_pair():
    """The server's copy of the analysis may be stale; the local one stays."""
    existing = _analyzed_job()
    incoming = _analyzed_job(position="Staff Engineer", compatibility_score=40,
                             analysis=JobAnalysis(matching_skills=["old"]),
                             polished_resume="Older resume")

    merged = merge_update(existing, incoming)

    assert merged.position == "Staff Engineer"
    assert merged.compatibility_score == 70
    assert merged.analysis == existing.analysis
    assert merged.polished_resume == "Old polished resume"


def test_apply_analysis_sets_score_and_analysis_together():
    existing = JobRecord(id="job-1", company="Acme", position="Engineer")
    result = AnalysisResult(match_score=82, matching_skills=["Python"],
                            missing_skills=["Go"], recommendations=["Learn Go"],
                            polished_resume="New resume")

    updated = apply_analysis(existing, result)

    assert updated.compatibility_score == 82
    assert updated.analysis.missing_skills == ["Go"]
    assert updated.polished_resume == "New resume"
    assert existing.compatibility_score is None  # records are immutable


def test_apply_analysis_without_polished_resume_keeps_old_one():
    existing = _analyzed_job()
    result = AnalysisResult(match_score=60)

    updated = apply_analysis(existing, result)

    assert updated.compatibility_score == 60
    assert updated.analysis.is_empty()
    assert updated.polished_resume == "Old polished resume"


def test_resume_analysis_payload():
    entry = ResumeAnalysis.model_validate({
        "_id": "r1", "score": 74, "atsScore": 68,
        "suggestions": ["Quantify"], "grammarFixes": "Fixed tense",
        "createdAt": "2024-03-05T10:00:00Z",
    })
    assert entry.ats_score == 68
    assert entry.grammar_fixes == "Fixed tense"
    assert entry.created_at.year == 2024
