"""
Web module for Chat Printer.

Exposes blueprints for:
- Jobs endpoints: jobs_bp
- Health endpoint: health_bp
"""

from .health import health_bp
from .jobs import jobs_bp

__all__ = ["health_bp", "jobs_bp"]
