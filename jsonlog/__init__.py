"""Structured logging to JSON lines files."""

from jsonlog.config import Config
from jsonlog.environment import Environment
from jsonlog.errors import (
    ColumnResolutionFailure,
    InvalidLevel,
    JsonLogError,
    MaintenanceOnly,
    SinkWriteFailure,
)
from jsonlog.handler import JsonLogHandler
from jsonlog.logger import JsonLog, JsonLogPretty

__all__ = [
    "ColumnResolutionFailure",
    "Config",
    "Environment",
    "InvalidLevel",
    "JsonLog",
    "JsonLogError",
    "JsonLogHandler",
    "JsonLogPretty",
    "MaintenanceOnly",
    "SinkWriteFailure",
]
