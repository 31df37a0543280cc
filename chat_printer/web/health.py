from __future__ import annotations

"""
Health endpoint for Chat Printer.

This blueprint exposes `/healthz`, reporting:
- Overall status ("ok", "degraded" or "stopped")
- Printer worker status, queue size and session state
- Countdown and render counters when the pipeline provides them
"""

from typing import Any, Callable, Dict, Optional

from flask import Blueprint, current_app

health_bp = Blueprint("health", __name__)

StatusProvider = Callable[[], Dict[str, Any]]


def _pipeline_status() -> Optional[Dict[str, Any]]:
    provider: Optional[StatusProvider] = current_app.config.get("STATUS_PROVIDER")
    if provider is None:
        return None
    try:
        return dict(provider())
    except Exception as e:
        current_app.logger.warning("Status provider failed: %s", e)
        return {"error": type(e).__name__}


@health_bp.get("/healthz")
def healthz():
    status: Dict[str, Any] = {"status": "ok"}
    pipeline = _pipeline_status()
    if pipeline is None:
        status["status"] = "degraded"
        status["reason"] = "no_pipeline"
        return status, 200

    status.update(pipeline)
    if pipeline.get("error"):
        status["status"] = "degraded"
        status["reason"] = "status_unavailable"
    elif pipeline.get("fatal"):
        status["status"] = "stopped"
        status["reason"] = "printer_fatal"
    elif pipeline.get("shutdown"):
        status["status"] = "stopped"
        status["reason"] = "shutdown"
    elif pipeline.get("worker_started") and not pipeline.get("worker_alive"):
        status["status"] = "degraded"
        status["reason"] = "worker_not_running"
    return status, 200
