"""Message templating: placeholder substitution, exception blocks, truncation."""

from dataclasses import dataclass

from jsonlog.config import SECTION
from jsonlog.sanitize import (
    byte_length,
    escape_control,
    plain_text,
    truncate_to_byte_length,
)

PLACEHOLDER_PREFIX = "{"
PLACEHOLDER_SUFFIX = "}"

NUL_MARKER = "_NUL_"

# Kilobytes; 0 disables truncation.
TRUNCATE_DEFAULT = 32

# Estimated byte length of every column but the message.
NON_MESSAGE_OVERHEAD = 768

USER_AGENT_TRUNCATE = 100


@dataclass(frozen=True)
class ComposedMessage:
    text: str
    length_prepared: int = 0
    length_truncated: int = 0

    @property
    def truncation(self) -> str:
        """'prepared/truncated' byte lengths, empty when nothing was cut."""
        if not self.length_truncated:
            return ""
        return f"{self.length_prepared}/{self.length_truncated}"


def truncate_budget(kilobytes, user_agent_max: int = USER_AGENT_TRUNCATE) -> int:
    """Byte budget for the message column, 0 meaning unlimited.

    Takes the configured total in KB, subtracts the other columns' estimated
    size and the user agent cap, then leaves room for JSON hex escaping of
    <>&" by scaling with 7/8.
    """
    kilobytes = int(kilobytes or 0)
    if kilobytes <= 0:
        return 0
    budget = kilobytes * 1024 - NON_MESSAGE_OVERHEAD - user_agent_max
    return max(budget * 7 // 8, 0)


def exception_code(exc: BaseException) -> int:
    code = getattr(exc, "code", None)
    if isinstance(code, int) and not isinstance(code, bool):
        return code
    errno = getattr(exc, "errno", None)
    if isinstance(errno, int):
        return errno
    return 0


def exception_location(exc: BaseException) -> tuple[str, int]:
    """File and line of the innermost traceback frame; ('', 0) if untraced."""
    tb = exc.__traceback__
    if tb is None:
        return "", 0
    while tb.tb_next is not None:
        tb = tb.tb_next
    return tb.tb_frame.f_code.co_filename, tb.tb_lineno


def exception_name(exc: BaseException) -> str:
    cls = type(exc)
    if cls.__module__ in ("builtins", "__main__"):
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


def format_exception(exc: BaseException, _depth: int = 0) -> str:
    """Render 'Name(code)@file:line' + escaped message, then any chained error."""
    filename, line = exception_location(exc)
    block = (
        f"{exception_name(exc)}({exception_code(exc)})@{filename}:{line}\n"
        f"{escape_control(str(exc))}"
    )
    previous = exc.__cause__ or exc.__context__
    # Guard against cyclic chains.
    if previous is not None and previous is not exc and _depth < 10:
        block += "\nPrevious: " + format_exception(previous, _depth + 1)
    return block


def describe_exception(exc: BaseException) -> str:
    """Single-line form for diagnostics: 'Name(code)@file:line: message'."""
    filename, line = exception_location(exc)
    return (
        f"{exception_name(exc)}({exception_code(exc)})@{filename}:{line}: "
        f"{escape_control(str(exc))}"
    )


def placeholder(key) -> str:
    return f"{PLACEHOLDER_PREFIX}{key}{PLACEHOLDER_SUFFIX}"


class MessageComposer:
    """Turns (raw template, context) into the final message text.

    The truncation budget is read from config once and cached.
    """

    def __init__(self, config, user_agent_max: int = USER_AGENT_TRUNCATE):
        self._config = config
        self._user_agent_max = user_agent_max
        self._budget: int | None = None

    @property
    def budget(self) -> int:
        if self._budget is None:
            self._budget = truncate_budget(
                self._config.get(SECTION, "truncate", TRUNCATE_DEFAULT),
                self._user_agent_max,
            )
        return self._budget

    def compose(self, raw: str, context: dict) -> ComposedMessage:
        """Substitute placeholders, escape NUL, truncate.

        May set context['code'] from an exception in context['exception'],
        so the code column agrees with the message.
        """
        if not raw:
            return ComposedMessage("")

        msg = raw
        if context:
            exc = context.get("exception")
            if isinstance(exc, BaseException):
                if not context.get("code"):
                    context["code"] = exception_code(exc)
                token = placeholder("exception")
                if token in msg:
                    msg = msg.replace(token, format_exception(exc))

            for key, value in context.items():
                if key == "exception" and isinstance(value, BaseException):
                    continue
                token = placeholder(key)
                if token in msg:
                    msg = msg.replace(token, plain_text(value))

        msg = msg.replace("\0", NUL_MARKER)

        length = byte_length(msg)
        if not length:
            return ComposedMessage("")

        budget = self.budget
        if budget and length > budget:
            msg = truncate_to_byte_length(msg, budget)
            return ComposedMessage(msg, length, byte_length(msg))
        return ComposedMessage(msg, length, 0)
