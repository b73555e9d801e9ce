"""
Test the analysis orchestrator: per-job in-flight tracking, merges and
failure recovery.
"""

import asyncio
import logging

import pytest

from careertrack.core.errors import ErrorKind, TransportError, UpstreamError
from careertrack.core.schemas import AnalysisRequestState, JobStatus
from careertrack.services.orchestrator import AnalysisStateMachine

logger = logging.getLogger(__name__)


async def _seed(workspace, job_gateway, **fields):
    job_gateway.seed(**fields)
    await workspace.jobs.refresh()


def test_state_machine_transitions():
    S = AnalysisRequestState
    assert AnalysisStateMachine.can_transition(S.IDLE, S.IN_FLIGHT)
    assert AnalysisStateMachine.can_transition(S.IN_FLIGHT, S.SUCCEEDED)
    assert AnalysisStateMachine.can_transition(S.IN_FLIGHT, S.FAILED)
    assert AnalysisStateMachine.can_transition(S.FAILED, S.IDLE)
    assert not AnalysisStateMachine.can_transition(S.IDLE, S.SUCCEEDED)
    assert not AnalysisStateMachine.can_transition(S.IN_FLIGHT, S.IN_FLIGHT)


@pytest.mark.asyncio
async def test_double_trigger_sends_one_request(workspace, job_gateway, analysis_gateway,
                                                notifications, long_description):
    await _seed(workspace, job_gateway, id="job-1", company="Acme", position="Engineer",
                job_description=long_description)
    analysis_gateway.hold()
    orchestrator = workspace.orchestrator

    first = orchestrator.trigger("job-1", long_description)
    second = orchestrator.trigger("job-1", long_description)
    await asyncio.sleep(0)

    assert first is not None
    assert second is None
    assert orchestrator.status_of("job-1") == AnalysisRequestState.IN_FLIGHT
    assert len(analysis_gateway.calls) == 1

    analysis_gateway.release()
    await orchestrator.drain()

    merges = [n for n in notifications if n[1] == AnalysisRequestState.SUCCEEDED]
    assert len(merges) == 1
    assert orchestrator.status_of("job-1") == AnalysisRequestState.IDLE
    assert workspace.jobs.get("job-1").compatibility_score == 82
    logger.info("Duplicate trigger suppression: PASS")


@pytest.mark.asyncio
async def test_empty_description_rejected_without_request(workspace, analysis_gateway):
    orchestrator = workspace.orchestrator

    assert orchestrator.trigger("job-1", "") is None
    assert orchestrator.trigger("job-1", "   ") is None
    assert orchestrator.trigger("job-1", None) is None

    assert analysis_gateway.calls == []
    assert orchestrator.status_of("job-1") == AnalysisRequestState.IDLE
    assert orchestrator.last_error.kind == ErrorKind.VALIDATION


def test_trigger_outside_event_loop_leaves_job_idle(workspace, analysis_gateway, notifications,
                                                    long_description):
    orchestrator = workspace.orchestrator

    with pytest.raises(RuntimeError):
        orchestrator.trigger("job-1", long_description)

    assert orchestrator.status_of("job-1") == AnalysisRequestState.IDLE
    assert orchestrator.in_flight_ids() == []
    assert notifications == []
    assert analysis_gateway.calls == []


@pytest.mark.asyncio
async def test_state_notifications_in_order(workspace, job_gateway, notifications,
                                            long_description):
    await _seed(workspace, job_gateway, id="job-1", company="Acme", position="Engineer")

    await workspace.orchestrator.trigger("job-1", long_description)

    states = [state for job_id, state, _ in notifications if job_id == "job-1"]
    assert states == [
        AnalysisRequestState.IN_FLIGHT,
        AnalysisRequestState.SUCCEEDED,
        AnalysisRequestState.IDLE,
    ]


@pytest.mark.asyncio
async def test_failure_keeps_previous_analysis_and_allows_retry(
        workspace, job_gateway, analysis_gateway, notifications, long_description):
    await _seed(workspace, job_gateway, id="job-1", company="Acme", position="Engineer")
    orchestrator = workspace.orchestrator

    await orchestrator.trigger("job-1", long_description)
    before = workspace.jobs.get("job-1")
    assert before.compatibility_score == 82

    analysis_gateway.failures["job-1"] = UpstreamError("AI service unavailable", status_code=503)
    analysis_gateway.score = 40
    await orchestrator.trigger("job-1", long_description)

    after = workspace.jobs.get("job-1")
    assert after == before
    assert orchestrator.status_of("job-1") == AnalysisRequestState.IDLE
    assert orchestrator.last_error.kind == ErrorKind.UPSTREAM
    assert orchestrator.last_error.job_id == "job-1"
    failed = [n for n in notifications if n[1] == AnalysisRequestState.FAILED]
    assert len(failed) == 1 and failed[0][2].message == "AI service unavailable"

    # retry succeeds
    del analysis_gateway.failures["job-1"]
    await orchestrator.trigger("job-1", long_description)
    assert workspace.jobs.get("job-1").compatibility_score == 40


@pytest.mark.asyncio
async def test_unexpected_exception_is_non_fatal(workspace, job_gateway, analysis_gateway,
                                                 long_description):
    await _seed(workspace, job_gateway, id="job-1", company="Acme", position="Engineer")
    analysis_gateway.failures["job-1"] = RuntimeError("boom")

    await workspace.orchestrator.trigger("job-1", long_description)

    assert workspace.orchestrator.status_of("job-1") == AnalysisRequestState.IDLE
    assert workspace.orchestrator.last_error.message == "boom"
    assert workspace.jobs.get("job-1").compatibility_score is None


@pytest.mark.asyncio
async def test_concurrent_jobs_tracked_independently(workspace, job_gateway, analysis_gateway,
                                                     long_description):
    job_gateway.seed(id="job-1", company="Acme", position="Engineer")
    job_gateway.seed(id="job-2", company="Globex", position="Analyst")
    await workspace.jobs.refresh()
    analysis_gateway.hold()
    analysis_gateway.failures["job-2"] = TransportError("timed out")
    orchestrator = workspace.orchestrator

    orchestrator.trigger("job-1", long_description)
    orchestrator.trigger("job-2", long_description)
    await asyncio.sleep(0)

    assert sorted(orchestrator.in_flight_ids()) == ["job-1", "job-2"]
    assert orchestrator.is_analyzing("job-1") and orchestrator.is_analyzing("job-2")

    analysis_gateway.release()
    await orchestrator.drain()

    assert orchestrator.in_flight_ids() == []
    assert workspace.jobs.get("job-1").compatibility_score == 82
    assert workspace.jobs.get("job-2").compatibility_score is None


@pytest.mark.asyncio
async def test_result_for_deleted_job_is_discarded(workspace, job_gateway, analysis_gateway,
                                                   notifications, long_description):
    await _seed(workspace, job_gateway, id="job-1", company="Acme", position="Engineer")
    analysis_gateway.hold()

    task = workspace.orchestrator.trigger("job-1", long_description)
    await asyncio.sleep(0)
    assert await workspace.jobs.remove("job-1")
    assert workspace.orchestrator.status_of("job-1") == AnalysisRequestState.IDLE

    notifications.clear()
    analysis_gateway.release()
    await task

    assert workspace.jobs.get("job-1") is None
    assert workspace.jobs.jobs == ()
    assert workspace.jobs.error is None
    assert workspace.orchestrator.last_error is None
    assert notifications == []


@pytest.mark.asyncio
async def test_failure_for_deleted_job_is_discarded(workspace, job_gateway, analysis_gateway,
                                                    long_description):
    await _seed(workspace, job_gateway, id="job-1", company="Acme", position="Engineer")
    analysis_gateway.hold()
    analysis_gateway.failures["job-1"] = TransportError("connection reset")

    task = workspace.orchestrator.trigger("job-1", long_description)
    await asyncio.sleep(0)
    await workspace.jobs.remove("job-1")
    analysis_gateway.release()
    await task

    assert workspace.orchestrator.last_error is None


@pytest.mark.asyncio
async def test_stale_result_does_not_touch_new_request(workspace, job_gateway, analysis_gateway,
                                                       long_description):
    """A request forgotten and re-triggered must not be completed by the old one."""
    await _seed(workspace, job_gateway, id="job-1", company="Acme", position="Engineer",
                status=JobStatus.APPLIED)
    orchestrator = workspace.orchestrator
    analysis_gateway.hold()

    old = orchestrator.trigger("job-1", long_description)
    await asyncio.sleep(0)
    orchestrator.forget("job-1")
    new = orchestrator.trigger("job-1", long_description)
    assert new is not None and new is not old

    analysis_gateway.release()
    await old
    # the new request is still accounted for until it finishes itself
    await orchestrator.drain()
    assert orchestrator.status_of("job-1") == AnalysisRequestState.IDLE
    assert len(analysis_gateway.calls) == 2
    assert workspace.jobs.get("job-1").compatibility_score == 82
