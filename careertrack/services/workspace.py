"""
Workspace wiring.

Builds the backend client, gateways and controllers for one user session.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from careertrack.core.api_client import BackendClient, get_backend_client
from careertrack.core.config import Settings, get_settings
from careertrack.services.gateways import (
    RemoteJobGateway, AnalysisGateway, ResumeGateway,
    HttpJobGateway, HttpAnalysisGateway, HttpResumeGateway
)
from careertrack.services.job_controller import JobCollectionController
from careertrack.services.orchestrator import AnalysisOrchestrator, NotificationCallback
from careertrack.services.resume_controller import ResumeAnalysisController
from careertrack.services.ui_state import UIStateController

logger = logging.getLogger(__name__)


@dataclass
class CareerWorkspace:
    """Everything the presentation layer talks to."""

    jobs: JobCollectionController
    orchestrator: AnalysisOrchestrator
    ui: UIStateController
    resume: ResumeAnalysisController
    client: Optional[BackendClient] = None

    async def close(self):
        await self.orchestrator.drain()
        if self.client is not None:
            await self.client.aclose()


def build_workspace(
    job_gateway: RemoteJobGateway,
    analysis_gateway: AnalysisGateway,
    resume_gateway: ResumeGateway,
    settings: Optional[Settings] = None,
    notification_callback: Optional[NotificationCallback] = None,
    client: Optional[BackendClient] = None
) -> CareerWorkspace:
    """Wire controllers around the given gateways."""
    settings = settings or get_settings()

    orchestrator = AnalysisOrchestrator(
        analysis_gateway, notification_callback=notification_callback
    )
    jobs = JobCollectionController(
        job_gateway, orchestrator, analysis_settings=settings.analysis
    )
    ui = UIStateController(jobs)
    resume = ResumeAnalysisController(
        resume_gateway, resume_settings=settings.resume, ui_state=ui
    )
    return CareerWorkspace(jobs=jobs, orchestrator=orchestrator, ui=ui,
                           resume=resume, client=client)


def create_workspace(
    settings: Optional[Settings] = None,
    client: Optional[BackendClient] = None,
    notification_callback: Optional[NotificationCallback] = None
) -> CareerWorkspace:
    """Create a workspace talking to the configured backend over HTTP."""
    settings = settings or get_settings()
    client = client or get_backend_client(settings.backend)
    analysis_timeout = settings.backend.analysis_timeout_seconds

    logger.info(f"Creating workspace for {settings.backend.base_url}")
    return build_workspace(
        HttpJobGateway(client),
        HttpAnalysisGateway(client, timeout=analysis_timeout),
        HttpResumeGateway(client, timeout=analysis_timeout),
        settings=settings,
        notification_callback=notification_callback,
        client=client
    )
