"""
Canvas pipeline: channels, the canvas and the UI commands passed between workers.

The workers themselves live in `chat_printer.pipeline.workers`.
"""

from .canvas import *
from .channels import *
from .commands import *
