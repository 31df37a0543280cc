from __future__ import annotations

"""
Jobs endpoints for Chat Printer.

This blueprint exposes:
- GET /jobs: JSON list of recent print jobs, newest first
- GET /jobs/<job_id>: JSON status for a specific job (404 if not found)
"""

from typing import Any, Dict, Optional

from flask import Blueprint, current_app, request

from chat_printer.printing.orchestrator import get_job, list_jobs

jobs_bp = Blueprint("jobs", __name__)


@jobs_bp.get("/jobs/<job_id>")
def job_status(job_id: str):
    """
    Return the JSON representation of a job by id, or 404 if not found.
    """
    job: Optional[Dict[str, Any]] = get_job(job_id)
    if job:
        current_app.logger.info("GET /jobs/%s ok status=%s", job_id, job.get("status"))
        return job
    current_app.logger.info("GET /jobs/%s not found", job_id)
    return {"error": "not_found"}, 404


@jobs_bp.get("/jobs")
def jobs_list():
    jobs = list_jobs()
    status = request.args.get("status")
    if status:
        jobs = [j for j in jobs if j.get("status") == status]
    try:
        limit = int(request.args.get("limit", "50"))
    except ValueError:
        return {"error": "invalid_limit"}, 400
    jobs = jobs[: max(limit, 0)]
    current_app.logger.info("GET /jobs list count=%d", len(jobs))
    return {"jobs": jobs, "count": len(jobs)}
