"""Record formatters: compact JSON, pretty JSON, 'prettier' (not JSON)."""

import json
import re
from typing import Callable

PRETTY_INDENT = 4

SEPARATOR = "/" * 80

_HEX_CHARS = "<>&'"
# Escape pairs in encoded JSON, e.g. \" or \\; scanned left to right.
_ESCAPE_PAIR_RE = re.compile(r"\\(.)", re.DOTALL)


def _hex(ch: str) -> str:
    return "\\u%04X" % ord(ch)


def _hex_escape(encoded: str) -> str:
    """Hex-escape <>&' and the quote inside strings of already-encoded JSON."""
    for ch in _HEX_CHARS:
        encoded = encoded.replace(ch, _hex(ch))
    return _ESCAPE_PAIR_RE.sub(
        lambda m: _hex('"') if m.group(1) == '"' else m.group(0), encoded
    )


def format_compact(record: dict) -> str:
    """One line of JSON, keys in record order."""
    return _hex_escape(json.dumps(record, separators=(",", ":")))


def format_pretty(record: dict) -> str:
    """Indented, multi-line, still valid JSON."""
    return _hex_escape(json.dumps(record, indent=PRETTY_INDENT))


def format_prettier(record: dict, message_key: str = "message") -> str:
    """For development eyes only: NOT parsable JSON.

    The message moves to the bottom and is spliced in raw, newlines kept,
    and a separator line follows the event.
    """
    event = dict(record)
    message = str(event.pop(message_key, ""))
    event[message_key] = ""
    encoded = json.dumps(event, indent=PRETTY_INDENT, ensure_ascii=False)
    pattern = re.compile(r"\n([ \t]+)(" + re.escape(json.dumps(message_key)) + r":[ ]*\")\"")
    spliced = pattern.sub(
        lambda m: "\n" + m.group(1) + m.group(2) + "\n" + message + "\n" + m.group(1) + '"',
        encoded,
        count=1,
    )
    return spliced + "\n" + SEPARATOR


FORMATTERS = {
    "compact": format_compact,
    "pretty": format_pretty,
    "prettier": format_prettier,
}


def get_formatter(name: str = "compact") -> Callable[[dict], str]:
    """Return the formatter for an output mode; raises ValueError if unknown."""
    key = (name or "compact").strip().lower()
    if key in ("default", "json"):
        key = "compact"
    if key not in FORMATTERS:
        raise ValueError(f"Unknown log format: {name!r}")
    return FORMATTERS[key]
