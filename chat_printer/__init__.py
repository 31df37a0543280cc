"""
Chat Printer package

This module provides an application factory for the status server:
- Creates a Flask app serving JSON only (no templates or static files)
- Registers the health and jobs blueprints (or a caller-supplied set)
- Wires a status provider so `/healthz` can report on the running pipeline
"""

from __future__ import annotations

import importlib
import logging
import os
import uuid
from collections.abc import Sequence
from typing import Any, Callable, Dict, Optional

from flask import Flask, g

logger = logging.getLogger(__name__)

DEFAULT_BLUEPRINTS = (
    ("chat_printer.web.health", "health_bp"),
    ("chat_printer.web.jobs", "jobs_bp"),
)


def _register_blueprint(app: Flask, import_path: str, attr: str) -> None:
    mod = importlib.import_module(import_path)
    bp = getattr(mod, attr)
    app.register_blueprint(bp)
    app.logger.debug("Registered blueprint: %s.%s", import_path, attr)


def create_app(
    status_provider: Optional[Callable[[], Dict[str, Any]]] = None,
    config_overrides: Optional[dict] = None,
    blueprints: Optional[Sequence[tuple[str, str]]] = None,
) -> Flask:
    """
    Application factory.

    Parameters:
    - status_provider: callable returning the pipeline status shown by /healthz
    - config_overrides: values to inject into app.config after defaults
    - blueprints: optional list of (import_path, attribute) tuples to register

    Returns:
    - Flask app instance
    """
    app = Flask("chat_printer")
    app.config["MAX_CONTENT_LENGTH"] = int(os.environ.get("CHATPRINTER_MAX_CONTENT_LENGTH", 64 * 1024))
    app.config["STATUS_PROVIDER"] = status_provider
    app.url_map.strict_slashes = False

    @app.before_request
    def _before_request():
        g.request_id = getattr(g, "request_id", uuid.uuid4().hex)

    for import_path, attr in blueprints or DEFAULT_BLUEPRINTS:
        _register_blueprint(app, import_path, attr)

    if config_overrides:
        app.config.update(config_overrides)

    return app


__all__ = ["create_app"]
