"""Reporter backends selectable from the command line."""

from .base import get_reporter, set_reporter, set_verbosity
from .jsonl import JsonLinesReporter
from .plain import PlainReporter
from .rich_reporter import RichReporter
from .silent import SilentReporter

__all__ = [
    "get_reporter",
    "set_reporter",
    "set_verbosity",
    "JsonLinesReporter",
    "PlainReporter",
    "RichReporter",
    "SilentReporter",
]
