"""
Thundra instrumentation for serverless function declarations.

Attaches the Thundra agent to every declared function, either as a Lambda
layer or through a generated wrapper handler.
"""

from .driver import FunctionOutcome, RunResult, classify, instrument
from .logging_config import setup_logging
from .plugin import ThundraPlugin

__all__ = [
    "FunctionOutcome",
    "RunResult",
    "ThundraPlugin",
    "classify",
    "instrument",
    "setup_logging",
]
