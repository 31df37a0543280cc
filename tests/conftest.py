# Ensure the repository root is on sys.path so `chat_printer` can be imported in tests.

import sys
from pathlib import Path

import pytest


def _ensure_repo_root_on_syspath() -> None:
    # This file lives at: <repo_root>/tests/conftest.py
    here = Path(__file__).resolve()
    repo_root = here.parent.parent
    repo_str = str(repo_root)
    if repo_str not in sys.path:
        sys.path.insert(0, repo_str)


_ensure_repo_root_on_syspath()


@pytest.fixture(autouse=True)
def _clear_job_registry():
    from chat_printer.printing import orchestrator

    orchestrator.JOBS.clear()
    yield
    orchestrator.JOBS.clear()
