"""
Printing subsystem for Chat Printer.

This package groups printing-related functionality:

- bitmap: Canvas rows to PrintBitmapRow payloads
- session: Printer command set and the print-job state machine
- render: Drawing placements (icons or text) onto the canvas
- orchestrator: Printer worker, job registry, heartbeat and recovery

For convenience, common names are re-exported for easy import.
"""

from .bitmap import *
from .job import *
from .session import *
from .render import *
from .orchestrator import *
