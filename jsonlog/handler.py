"""stdlib logging handler that forwards records to a JsonLog."""

import logging

# Least severe first; a record gets the first word whose number it doesn't exceed.
_LEVEL_MAP = (
    (logging.DEBUG, "debug"),
    (logging.INFO, "info"),
    (logging.WARNING, "warning"),
    (logging.ERROR, "error"),
    (logging.CRITICAL, "critical"),
)


def level_word(levelno: int) -> str:
    """Map a stdlib level number to a severity word; in-betweens round up."""
    for threshold, word in _LEVEL_MAP:
        if levelno <= threshold:
            return word
    return "critical"


class JsonLogHandler(logging.Handler):
    """Usage: logging.getLogger("app").addHandler(JsonLogHandler(JsonLog())).

    Context goes in via extra={"context": {...}}; exc_info becomes the
    'exception' context entry and the subtype defaults to the logger name.
    Records of jsonlog's own diagnostics are dropped to avoid feedback loops.
    """

    def __init__(self, json_log, level=logging.NOTSET):
        super().__init__(level)
        self.json_log = json_log

    def emit(self, record: logging.LogRecord) -> None:
        if record.name == "jsonlog" or record.name.startswith("jsonlog."):
            return
        try:
            context = dict(getattr(record, "context", None) or {})
            if record.exc_info and record.exc_info[1] is not None:
                context.setdefault("exception", record.exc_info[1])
            if not (context.get("subType") or context.get("subtype")):
                context["subtype"] = record.name
            self.json_log.log(level_word(record.levelno), record.getMessage(), context)
        except Exception:  # noqa: BLE001
            self.handleError(record)
