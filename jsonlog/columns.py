"""Column functions and the resolver that assembles them into one flat record.

Columns come in three groups:

- site: constant for the process (type, host, site_id, canonical, tags)
- request: constant for one inbound request (method, request_uri, referer,
  client_ip, useragent)
- event: computed for every log call (message, @timestamp, message_id, ...)

Each column is a (key, output name, function) triple; the function takes the
resolver and the event and returns a string or number. Site and request
values are cached by the resolver once computed.
"""

import ipaddress
import logging
import os
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, NamedTuple

from jsonlog.config import SECTION, parse_bool, split_list
from jsonlog.environment import Environment
from jsonlog.errors import ColumnResolutionFailure
from jsonlog.event import LogEvent
from jsonlog.message import (
    MessageComposer,
    USER_AGENT_TRUNCATE,
    describe_exception,
    exception_code,
    exception_name,
)
from jsonlog.sanitize import ascii_printable, stringify, substr, unicode_printable

logger = logging.getLogger(__name__)

TYPE_DEFAULT = "webapp"
SUB_TYPE_DEFAULT = "component"
SITE_ID_UNKNOWN = "unknown"
REFERER_TRUNCATE = 255
PROXY_HEADER_DEFAULT = "X-Forwarded-For"

# Last directory names that say nothing about the site.
USELESS_DIR_NAMES = frozenset(("http", "html", "public_html", "www"))

GROUPS = ("site", "request", "event")
DEFAULT_SEQUENCE = ("event", "request", "site")
DEFAULT_SKIP_EMPTY = (
    "canonical",
    "tags",
    "referer",
    "clientIp",
    "userAgent",
    "correlationId",
    "exception",
    "truncation",
    "user",
    "session",
)

FAILURE_MESSAGE = (
    "jsonlog failed due to exception raised via a column method call, "
    "do check standard error log."
)


class Column(NamedTuple):
    key: str
    name: str
    func: Callable[["ColumnResolver", LogEvent], Any]


# Pure helpers.

def site_id_from_path(path: str) -> str:
    """Last directory name of path, or the one before if the last is useless."""
    dirs = [d for d in path.replace("\\", "/").strip("/").split("/") if d]
    if not dirs:
        return SITE_ID_UNKNOWN
    site_id = dirs.pop()
    if site_id in USELESS_DIR_NAMES and dirs:
        site_id = dirs.pop()
    return site_id or SITE_ID_UNKNOWN


def resolve_client_ip(remote_addr: str, forwarded: str, proxies) -> str:
    """Client IP, skipping trusted reverse proxies.

    With trusted proxies configured and a forwarded-for header present, the
    direct peer is the hop that delivered the header, so it is treated like
    a proxy: it and every trusted address are removed from the chain and the
    right-most remaining address wins. If only trusted addresses were listed,
    the left-most header entry is used. A header entry that is not a valid
    IP leaves the peer address in place; an invalid peer gives ''.
    """
    peer = remote_addr or ""
    if not _is_ip(peer):
        return ""
    if proxies and forwarded:
        ips = [ip for ip in ascii_printable(forwarded).replace(" ", "").split(",") if ip]
        if ips:
            skip = set(split_list(proxies))
            skip.add(peer)
            untrusted = [ip for ip in ips if ip not in skip]
            candidate = untrusted[-1] if untrusted else ips[0]
            if _is_ip(candidate):
                return candidate
    return peer


def _is_ip(value: str) -> bool:
    if not value:
        return False
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def iso_timestamp(utc: bool = False, now: datetime | None = None) -> str:
    """ISO 8601 with milliseconds; local time with offset, or UTC with 'Z'."""
    if utc:
        moment = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
        return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    moment = (now or datetime.now()).astimezone()
    return moment.isoformat(timespec="milliseconds")


def _as_code(value):
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    return int(str(value).strip())


# Site columns.

def column_type(resolver, event):
    return stringify(resolver.config.get(SECTION, "type", TYPE_DEFAULT))


def column_host(resolver, event):
    env = resolver.environment
    if env.cli and not env.server_name:
        return unicode_printable(env.hostname)
    if not env.server_name:
        return ""
    host = unicode_printable(env.server_name)
    if env.server_port and str(env.server_port).isdigit():
        host += ":" + str(env.server_port)
    return host


def column_site_id(resolver, event):
    return resolver.site_id()


def column_canonical(resolver, event):
    return stringify(resolver.config.get(SECTION, "canonical", ""))


def column_tags(resolver, event):
    return ",".join(split_list(resolver.config.get(SECTION, "tags", "")))


# Request columns.

def column_method(resolver, event):
    method = resolver.environment.request_method
    if not method:
        return "cli"
    return re.sub(r"[^A-Z]", "", method.upper())


def column_request_uri(resolver, event):
    env = resolver.environment
    if env.request_uri:
        return unicode_printable(env.request_uri)
    if env.cli and env.argv:
        return " ".join(env.argv)
    return "/"


def column_referer(resolver, event):
    referer = resolver.environment.referer
    if not referer:
        return ""
    return substr(unicode_printable(referer), REFERER_TRUNCATE)


def column_client_ip(resolver, event):
    env = resolver.environment
    proxies = resolver.config.get(SECTION, "reverse_proxy_addresses", "")
    forwarded = ""
    if env.remote_addr and proxies:
        header = resolver.config.get(SECTION, "reverse_proxy_header", PROXY_HEADER_DEFAULT)
        if header:
            forwarded = env.header(str(header))
    return resolve_client_ip(env.remote_addr, forwarded, proxies)


def column_user_agent(resolver, event):
    agent = resolver.environment.user_agent
    if not agent:
        return ""
    return substr(unicode_printable(agent), resolver.user_agent_max)


# Event columns.

def column_message(resolver, event):
    composed = resolver.composer.compose(event.take_raw_message(), event.context)
    event.length_prepared = composed.length_prepared
    event.length_truncated = composed.length_truncated
    return composed.text


def column_timestamp(resolver, event):
    return iso_timestamp(resolver.timestamp_utc)


def column_event_id(resolver, event):
    return resolver.site_id() + uuid.uuid4().hex


def column_correlation_id(resolver, event):
    ctx = event.context
    return stringify(ctx.get("correlationId") or ctx.get("correlation_id") or "")


def column_sub_type(resolver, event):
    ctx = event.context
    sub_type = ctx.get("subType") or ctx.get("subtype")
    if sub_type:
        return stringify(sub_type)
    return stringify(resolver.config.get(SECTION, "subtype", SUB_TYPE_DEFAULT) or SUB_TYPE_DEFAULT)


def column_level(resolver, event):
    return event.level


def column_code(resolver, event):
    """Context code/errorCode/error_code, else the exception's code, else 0."""
    ctx = event.context
    for key in ("code", "errorCode", "error_code"):
        if ctx.get(key):
            return _as_code(ctx[key])
    exc = ctx.get("exception")
    if isinstance(exc, BaseException):
        return exception_code(exc)
    return 0


def column_exception(resolver, event):
    exc = event.context.get("exception")
    if isinstance(exc, BaseException):
        return exception_name(exc)
    return ""


def column_truncation(resolver, event):
    if not event.length_truncated:
        return ""
    return f"{event.length_prepared}/{event.length_truncated}"


def column_user(resolver, event):
    return stringify(event.context.get("user", ""))


def column_session(resolver, event):
    return stringify(event.context.get("session", ""))


SITE_COLUMNS = (
    Column("type", "type", column_type),
    Column("host", "host", column_host),
    Column("siteId", "site_id", column_site_id),
    Column("canonical", "canonical", column_canonical),
    Column("tags", "tags", column_tags),
)

REQUEST_COLUMNS = (
    Column("method", "method", column_method),
    Column("requestUri", "request_uri", column_request_uri),
    Column("referer", "referer", column_referer),
    Column("clientIp", "client_ip", column_client_ip),
    Column("userAgent", "useragent", column_user_agent),
)

# message must precede truncation.
EVENT_COLUMNS = (
    Column("message", "message", column_message),
    Column("timestamp", "@timestamp", column_timestamp),
    Column("eventId", "message_id", column_event_id),
    Column("correlationId", "correlation_id", column_correlation_id),
    Column("subType", "subtype", column_sub_type),
    Column("level", "level", column_level),
    Column("code", "code", column_code),
    Column("exception", "exception", column_exception),
    Column("truncation", "trunc", column_truncation),
    Column("user", "user", column_user),
    Column("session", "session", column_session),
)


class ColumnResolver:
    """Evaluates the column groups and merges them into one record.

    Site values are cached for the lifetime of the resolver, request values
    until reset_request() binds the next request. Neither cache is refreshed
    when configuration changes; settings are read once, on first use.
    Not safe for concurrent use from several threads.
    """

    def __init__(
        self,
        config,
        environment: Environment | None = None,
        composer: MessageComposer | None = None,
        site_columns=SITE_COLUMNS,
        request_columns=REQUEST_COLUMNS,
        event_columns=EVENT_COLUMNS,
        user_agent_max: int = USER_AGENT_TRUNCATE,
    ):
        self.config = config
        self.environment = environment or Environment.from_process()
        self.user_agent_max = user_agent_max
        self.composer = composer or MessageComposer(config, user_agent_max)
        self._columns = {
            "site": tuple(site_columns),
            "request": tuple(request_columns),
            "event": tuple(event_columns),
        }
        for group, columns in self._columns.items():
            for column in columns:
                if not callable(column.func):
                    raise TypeError(f"{group} column {column.key!r} has no callable function")
        if self.column_name("event", "message") is None:
            raise ValueError("event columns must include 'message'")

        self._site: dict | None = None
        self._request: dict | None = None
        self._site_id = ""
        self._sequence: tuple | None = None
        self._skip_empty: frozenset | None = None
        self._timestamp_utc: bool | None = None

    # Settings, read once.

    @property
    def sequence(self) -> tuple:
        if self._sequence is None:
            sequence = tuple(
                s.lower() for s in split_list(
                    self.config.get(SECTION, "column_sequence", ",".join(DEFAULT_SEQUENCE))
                )
            )
            if sorted(sequence) != sorted(GROUPS):
                logger.warning(
                    "jsonlog, invalid column_sequence %r, using %s",
                    sequence, ",".join(DEFAULT_SEQUENCE),
                )
                sequence = DEFAULT_SEQUENCE
            self._sequence = sequence
        return self._sequence

    @property
    def skip_empty(self) -> frozenset:
        if self._skip_empty is None:
            self._skip_empty = frozenset(split_list(
                self.config.get(SECTION, "skip_empty_columns", DEFAULT_SKIP_EMPTY)
            ))
        return self._skip_empty

    @property
    def timestamp_utc(self) -> bool:
        if self._timestamp_utc is None:
            self._timestamp_utc = parse_bool(self.config.get(SECTION, "timestamp_utc", False))
        return self._timestamp_utc

    def columns(self, group: str) -> tuple:
        return self._columns[group]

    def column_name(self, group: str, key: str) -> str | None:
        for column in self._columns[group]:
            if column.key == key:
                return column.name
        return None

    def site_id(self, no_save: bool = False) -> str:
        """Configured site id, else derived from the working directory.

        A derived id is written back to config unless no_save.
        """
        if not self._site_id:
            site_id = stringify(self.config.get(SECTION, "siteid", ""))
            if not site_id:
                site_id = site_id_from_path(os.getcwd())
                if site_id != SITE_ID_UNKNOWN and not no_save:
                    self.config.set(SECTION, "siteid", site_id)
            self._site_id = site_id
        return self._site_id

    def reset_request(self, environment: Environment | None = None) -> None:
        """Start a new request: drop the request cache, keep the site cache."""
        if environment is not None:
            self.environment = environment
        self._request = None

    # Assembly.

    def _evaluate(self, group: str, event: LogEvent):
        """Returns (record, None) or (partial record, ColumnResolutionFailure)."""
        record = {}
        skip = self.skip_empty
        for column in self._columns[group]:
            try:
                value = column.func(self, event)
            except Exception as exc:  # noqa: BLE001
                return record, ColumnResolutionFailure(column.key, exc)
            if value == "" and column.key in skip:
                continue
            record[column.name] = value
        return record, None

    def _evaluate_custom(self, event: LogEvent):
        record = {}
        try:
            for name, value in event.custom_columns.items():
                record[str(name)] = stringify(value() if callable(value) else value)
        except Exception as exc:  # noqa: BLE001
            return record, ColumnResolutionFailure("log_custom_columns", exc)
        return record, None

    def get(self, event: LogEvent) -> dict:
        """Compose the flat record for an event; never raises for column errors."""
        groups = {"site": self._site, "request": self._request, "event": None}
        failure = None

        if groups["site"] is None:
            groups["site"], failure = self._evaluate("site", event)
            if failure is None:
                self._site = groups["site"]

        if failure is None and groups["request"] is None:
            groups["request"], failure = self._evaluate("request", event)
            if failure is None:
                self._request = groups["request"]

        if failure is None:
            groups["event"], failure = self._evaluate("event", event)

        if failure is None:
            custom, failure = self._evaluate_custom(event)
            groups["event"].update(custom)

        if failure is not None:
            groups = self._contain(failure, groups, event)

        record = {}
        for group in self.sequence:
            for name, value in (groups[group] or {}).items():
                record.setdefault(name, value)
        event.record = record
        return record

    def _contain(self, failure: ColumnResolutionFailure, groups: dict, event: LogEvent) -> dict:
        """Fallback record after a column failure; logs the cause to stderr logging."""
        self._site = None
        self._request = None

        site = dict(groups["site"] or {})
        request = dict(groups["request"] or {})
        event_record = dict(groups["event"] or {})

        site_id = SITE_ID_UNKNOWN
        site_name = self.column_name("site", "siteId")
        if site_name and site.get(site_name):
            site_id = site[site_name]
        else:
            try:
                site_id = self.site_id(no_save=True)
            except Exception:  # noqa: BLE001
                site_id = SITE_ID_UNKNOWN
            if site_name:
                site[site_name] = site_id

        message_name = self.column_name("event", "message")
        original = event_record.get(message_name) or event.take_raw_message()

        logger.error(
            "jsonlog, site ID[%s], failed due to exception raised via a column method call, column[%s]: %s",
            site_id, failure.column, describe_exception(failure.cause),
        )

        event_record[message_name] = FAILURE_MESSAGE + (
            " Original message: " + original if original else " Original message lost."
        )
        level_name = self.column_name("event", "level")
        if level_name:
            event_record.setdefault(level_name, event.level)

        return {"site": site, "request": request, "event": event_record}
