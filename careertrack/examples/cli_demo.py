"""
CareerTrack CLI Demo

Interactive command-line client for the job tracker.
Run with: python -m careertrack.examples.cli_demo

Talks to the backend configured via BACKEND_BASE_URL / BACKEND_API_TOKEN.
Analyses run in the background while the prompt waits for input.
"""

import asyncio
import logging
import shlex
from typing import List

from careertrack.core.config import get_settings
from careertrack.core.schemas import AnalysisRequestState, JobRecord, JobStatus
from careertrack.services.workspace import CareerWorkspace, create_workspace

# Configure logging
logging.basicConfig(
    level=getattr(logging, get_settings().log_level.upper(), logging.INFO),
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

HELP = """
Commands:
  list                         show all jobs
  add <company> <position> [description...]
  status <id> <Applied|Interviewing|Rejected|Offered>
  analyze <id>                 (re)run the compatibility analysis
  show <id>                    analysis details
  delete <id>
  stats
  refresh
  quit
"""


def print_job(ws: CareerWorkspace, job: JobRecord):
    state = ws.orchestrator.status_of(job.id)
    score = f"{job.compatibility_score}%" if job.has_analysis else "-"
    analyzing = " (analyzing...)" if state == AnalysisRequestState.IN_FLIGHT else ""
    print(f"  [{job.id}] {job.company} - {job.position} | {job.status.value} | "
          f"match {score}{analyzing}")


def print_analysis(job: JobRecord):
    if not job.has_analysis:
        print("  No analysis yet.")
        return
    print(f"\n  {job.company} - {job.position}: {job.compatibility_score}% match")
    print(f"  Matching: {', '.join(job.analysis.matching_skills) or '-'}")
    print(f"  Missing:  {', '.join(job.analysis.missing_skills) or '-'}")
    for rec in job.analysis.recommendations:
        print(f"   * {rec}")
    if job.polished_resume:
        print("\n  Polished resume:\n")
        print(job.polished_resume)


def report_error(ws: CareerWorkspace):
    if ws.jobs.error:
        print(f"  ! {ws.jobs.error.message}")


async def handle(ws: CareerWorkspace, args: List[str]) -> bool:
    """Run one command. Returns False to quit."""
    command, rest = args[0].lower(), args[1:]

    if command in ("quit", "exit"):
        return False

    if command == "list":
        if not ws.jobs.jobs:
            print("  No jobs tracked yet.")
        for job in ws.jobs.jobs:
            print_job(ws, job)

    elif command == "add" and len(rest) >= 2:
        job = await ws.jobs.create({
            "company": rest[0],
            "position": rest[1],
            "jobDescription": " ".join(rest[2:]) or None,
        })
        if job:
            print_job(ws, job)
        report_error(ws)

    elif command == "status" and len(rest) == 2:
        job = ws.jobs.get(rest[0])
        if job is None:
            print("  Unknown job.")
            return True
        try:
            status = JobStatus(rest[1])
        except ValueError:
            print(f"  Unknown status {rest[1]}.")
            return True
        draft = job.to_draft().model_copy(update={"status": status})
        await ws.jobs.update(job.id, draft)
        report_error(ws)

    elif command == "analyze" and len(rest) == 1:
        if ws.jobs.analyze(rest[0]) is None and ws.orchestrator.last_error:
            print(f"  ! {ws.orchestrator.last_error.message}")
        report_error(ws)

    elif command == "show" and len(rest) == 1:
        job = ws.jobs.get(rest[0])
        if job is None:
            print("  Unknown job.")
        else:
            print_analysis(job)

    elif command == "delete" and len(rest) == 1:
        await ws.jobs.remove(rest[0])
        report_error(ws)

    elif command == "stats":
        stats = ws.jobs.stats()
        counts = ", ".join(f"{s.value}: {n}" for s, n in stats.by_status.items())
        print(f"  Total: {stats.total} ({counts})")

    elif command == "refresh":
        await ws.jobs.refresh()
        report_error(ws)

    else:
        print(HELP)

    return True


async def run_interactive_demo():
    """Run an interactive CLI session."""

    print("\n" + "=" * 60)
    print("           CAREERTRACK - Job Tracker")
    print("=" * 60)
    print(HELP)

    def on_analysis(job_id, state, error=None):
        if state == AnalysisRequestState.SUCCEEDED:
            job = ws.jobs.get(job_id)
            if job:
                print(f"\n  Analysis ready for {job.company}: {job.compatibility_score}% match")
        elif state == AnalysisRequestState.FAILED and error:
            print(f"\n  Analysis failed for {job_id}: {error.message}")

    ws = create_workspace(notification_callback=on_analysis)
    await ws.jobs.refresh()
    report_error(ws)

    try:
        while True:
            line = (await asyncio.to_thread(input, "\n> ")).strip()
            if not line:
                continue
            try:
                args = shlex.split(line)
            except ValueError as e:
                print(f"  ! {e}")
                continue
            if not await handle(ws, args):
                break
    except (EOFError, KeyboardInterrupt):
        pass
    finally:
        await ws.close()

    print("\nGoodbye!")


if __name__ == "__main__":
    asyncio.run(run_interactive_demo())
