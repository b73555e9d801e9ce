"""
Explicit merge rules for job records.

Two things write into an existing record: an edit confirmed by the
backend, and a completed compatibility analysis. Both go through here so
the score and the analysis always move together and a polished resume is
never lost.
"""

from careertrack.core.schemas import JobRecord, JobAnalysis, AnalysisResult


def merge_update(existing: JobRecord, incoming: JobRecord) -> JobRecord:
    """
    Combine a record returned by an update with the local copy.

    A draft never carries analysis fields, so only the editable fields are
    taken from the server. Score, analysis and polished resume always stay
    as they are locally; an analysis merged while the edit was out must
    not be replaced by the server's older copy.
    """
    return incoming.model_copy(update={
        "compatibility_score": existing.compatibility_score,
        "analysis": existing.analysis,
        "polished_resume": existing.polished_resume,
    })


def apply_analysis(existing: JobRecord, result: AnalysisResult) -> JobRecord:
    """Attach a completed analysis to a record in one step."""
    analysis = JobAnalysis(
        matching_skills=list(result.matching_skills),
        missing_skills=list(result.missing_skills),
        recommendations=list(result.recommendations),
    )
    polished = result.polished_resume
    if polished is None:
        polished = existing.polished_resume

    return existing.model_copy(update={
        "compatibility_score": result.match_score,
        "analysis": analysis,
        "polished_resume": polished,
    })
