# CareerTrack - Job Application Tracker Client
# Version 0.1.0

"""
CareerTrack keeps a job-application list in sync with the backend and
drives the AI compatibility analysis for each job.

Layers:
1. Gateways - REST contracts for jobs, job analysis and resume analysis
2. Controllers - job collection, analysis orchestration, resume analysis
3. UI State - collapse, selection, tabs and the job form draft
4. API - FastAPI surface for the presentation layer
"""

__version__ = "0.1.0"
