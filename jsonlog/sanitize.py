"""String sanitizers used when building column values."""

import html
import re
import unicodedata

_TAG_RE = re.compile(r"<[^>]*>")

# Named C escapes for bytes 0x00..0x1F; the rest go out as octal.
_C_ESCAPES = {
    7: "\\a",
    8: "\\b",
    9: "\\t",
    10: "\\n",
    11: "\\v",
    12: "\\f",
    13: "\\r",
}


def stringify(value) -> str:
    """Turn a context value into text.

    None becomes empty, sequences are comma-joined, anything else goes
    through str().
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    if isinstance(value, (list, tuple, set, frozenset)):
        return ", ".join(stringify(item) for item in value)
    return str(value)


def plain_text(value) -> str:
    """Stringify, strip markup tags, then HTML-escape; quotes as &quot; and &#039;."""
    escaped = html.escape(_TAG_RE.sub("", stringify(value)), quote=False)
    return escaped.replace('"', "&quot;").replace("'", "&#039;")


def unicode_printable(value) -> str:
    """Drop control and format characters, trim surrounding whitespace."""
    text = stringify(value)
    return "".join(
        ch for ch in text if unicodedata.category(ch) not in ("Cc", "Cf")
    ).strip()


def ascii_printable(value) -> str:
    """Keep only printable ASCII (0x20..0x7E)."""
    return "".join(ch for ch in stringify(value) if 32 <= ord(ch) <= 126)


def escape_control(text: str) -> str:
    """C-style escape of characters 0x00..0x1F, backslash left as is."""
    out = []
    for ch in text:
        code = ord(ch)
        if code < 32:
            out.append(_C_ESCAPES.get(code, "\\%03o" % code))
        else:
            out.append(ch)
    return "".join(out)


def substr(text: str, length: int) -> str:
    """Cut to at most `length` characters (not bytes)."""
    return text[:length]


def byte_length(text: str) -> int:
    return len(text.encode("utf-8"))


def truncate_to_byte_length(text: str, max_bytes: int) -> str:
    """Cut text to at most max_bytes of UTF-8 without splitting a code point."""
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text
    # A code point cut in half leaves an incomplete trailing sequence; drop it.
    return encoded[:max(max_bytes, 0)].decode("utf-8", "ignore")
