"""Logging setup for the Linear MCP server.

stdout belongs to the MCP stdio transport, so every record goes to stderr.
Production emits one JSON object per line; other environments get a
readable single-line format. The tool being executed and a short request id
are attached to each record from contextvars set by the server per call.
"""

import json
import logging
import sys
from contextvars import ContextVar
from typing import Dict, Optional

_tool_name: ContextVar[Optional[str]] = ContextVar("tool_name", default=None)
_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Library loggers that are chatty at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "mcp.server.lowlevel.server")


def set_log_context(
    tool_name: Optional[str] = None,
    request_id: Optional[str] = None,
):
    """Attach the current tool call to log records emitted in this task."""
    if tool_name is not None:
        _tool_name.set(tool_name)
    if request_id is not None:
        _request_id.set(request_id)


def clear_log_context():
    _tool_name.set(None)
    _request_id.set(None)


def _context_fields() -> Dict[str, str]:
    fields = {}
    tool = _tool_name.get()
    if tool:
        fields["tool_name"] = tool
    request_id = _request_id.get()
    if request_id:
        fields["request_id"] = request_id
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context_fields(),
        }
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


class HumanReadableFormatter(logging.Formatter):
    """``[time] LEVEL logger: message [tool=..., req=...]``"""

    _LABELS = {"tool_name": "tool", "request_id": "req"}

    def format(self, record: logging.LogRecord) -> str:
        line = (
            f"[{self.formatTime(record, self.datefmt)}] "
            f"{record.levelname:8s} {record.name}: {record.getMessage()}"
        )

        context = _context_fields()
        if context:
            tags = ", ".join(f"{self._LABELS[key]}={value}" for key, value in context.items())
            line += f" [{tags}]"

        if record.exc_info and record.exc_info[1]:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(environment: str = "development", log_level: str = "INFO"):
    """Install a single stderr handler on the root logger.

    Args:
        environment: "production" selects JSON output.
        log_level: Level name; unknown names fall back to INFO.
    """
    formatter: logging.Formatter
    if environment == "production":
        formatter = StructuredFormatter()
    else:
        formatter = HumanReadableFormatter(datefmt="%Y-%m-%d %H:%M:%S")

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
