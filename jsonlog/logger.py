"""JsonLog, the public entry point: gate, compose, format, commit."""

import logging

from jsonlog.columns import ColumnResolver
from jsonlog.config import SECTION, Config
from jsonlog.environment import Environment
from jsonlog.event import LogEvent
from jsonlog.formatter import format_compact, get_formatter
from jsonlog.sink import LogSink
from jsonlog.threshold import ThresholdGate

logger = logging.getLogger(__name__)


class JsonLog:
    """Logs an event as one JSON line if it is at least as severe as the threshold.

    One instance is meant to live for the whole process; it owns the site
    and request column caches. Call begin_request() at the start of every
    inbound request. Not thread-safe.
    """

    FORMAT = None

    def __init__(self, config=None, environment: Environment | None = None,
                 formatter=None, resolver_class=ColumnResolver):
        self.config = config if config is not None else Config()
        self.environment = environment or Environment.from_process()
        self.resolver = resolver_class(self.config, self.environment)
        self.gate = ThresholdGate(self.config)
        self.sink = LogSink(self.config, self.resolver.site_id, cli=self.environment.cli)
        self._formatter = formatter

    @property
    def formatter(self):
        if self._formatter is None:
            name = self.FORMAT or self.config.get(SECTION, "format", "compact")
            try:
                self._formatter = get_formatter(name)
            except ValueError:
                logger.warning("jsonlog, invalid format %r, using compact", name)
                self._formatter = format_compact
        return self._formatter

    def begin_request(self, environment: Environment) -> None:
        """Bind a new request; request columns are recomputed, site columns kept."""
        self.environment = environment
        self.resolver.reset_request(environment)
        self.sink.cli = environment.cli

    def log(self, level, message, context=None) -> None:
        """Log if severe enough.

        Raises InvalidLevel for a bad level; write failures only reach the
        stdlib logger.
        """
        event = LogEvent.create(level, message, context)
        if not self.gate.allows(event.rank):
            return
        self.sink.commit(self.formatter(self.resolver.get(event)))

    def compose(self, level, message, context=None) -> dict:
        """The record log() would write, without threshold or file commit."""
        return self.resolver.get(LogEvent.create(level, message, context))

    def emergency(self, message, context=None) -> None:
        self.log("emergency", message, context)

    def alert(self, message, context=None) -> None:
        self.log("alert", message, context)

    def critical(self, message, context=None) -> None:
        self.log("critical", message, context)

    def error(self, message, context=None) -> None:
        self.log("error", message, context)

    def warning(self, message, context=None) -> None:
        self.log("warning", message, context)

    def notice(self, message, context=None) -> None:
        self.log("notice", message, context)

    def info(self, message, context=None) -> None:
        self.log("info", message, context)

    def debug(self, message, context=None) -> None:
        self.log("debug", message, context)

    def committable(self, enable: bool = False, commit_on_success: bool = False,
                    verbose: bool = False):
        """Check whether events can be written; optionally create path/file.

        Returns a bool, or with verbose a dict {success, message, code}.
        With commit_on_success a successful check is itself logged (info),
        bypassing the threshold.
        """
        success, code, msgs = self.sink.committable(enable)

        if success and commit_on_success:
            record = self.resolver.get(LogEvent.create("info", "JsonLog is committable."))
            self.sink.commit(self.formatter(record))

        if not verbose:
            return success
        message = (
            ("JsonLog is committable" if success else "JsonLog is NOT committable")
            + f"; using configuration provided by {type(self.config).__name__} instance."
        )
        if msgs:
            message += "\n" + " ".join(msgs)
        return {"success": success, "message": message, "code": code}

    def truncate_log_file(self) -> str:
        """Empty the current log file; CLI/maintenance only (raises MaintenanceOnly)."""
        return self.sink.truncate()


class JsonLogPretty(JsonLog):
    """Multi-line, non-parsable output for development; never feed it to a collector."""

    FORMAT = "prettier"
