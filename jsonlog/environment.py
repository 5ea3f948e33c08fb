"""Snapshot of the runtime environment the logger reads request/site columns from."""

import socket
import sys
from dataclasses import dataclass, field


def header_key(name: str) -> str:
    """'X-Forwarded-For' -> 'HTTP_X_FORWARDED_FOR'; WSGI-style keys pass through."""
    key = name.strip().upper().replace("-", "_")
    if key.startswith("HTTP_") or key in ("CONTENT_TYPE", "CONTENT_LENGTH"):
        return key
    return "HTTP_" + key


@dataclass(frozen=True)
class Environment:
    """Request (WSGI) or process (CLI) data, frozen at construction time."""

    cli: bool = True
    server_name: str = ""
    server_port: str = ""
    request_method: str = ""
    request_uri: str = ""
    referer: str = ""
    remote_addr: str = ""
    user_agent: str = ""
    headers: dict = field(default_factory=dict)
    argv: tuple = ()
    hostname: str = ""

    @classmethod
    def from_wsgi(cls, environ: dict) -> "Environment":
        """Build from a WSGI environ dict (PEP 3333 keys)."""
        path = environ.get("REQUEST_URI") or environ.get("RAW_URI")
        if not path:
            path = (environ.get("SCRIPT_NAME", "") + environ.get("PATH_INFO", "")) or ""
            query = environ.get("QUERY_STRING", "")
            if path and query:
                path += "?" + query
        headers = {
            key: str(value) for key, value in environ.items()
            if key.startswith("HTTP_") or key in ("CONTENT_TYPE", "CONTENT_LENGTH")
        }
        return cls(
            cli=False,
            server_name=str(environ.get("SERVER_NAME", "") or ""),
            server_port=str(environ.get("SERVER_PORT", "") or ""),
            request_method=str(environ.get("REQUEST_METHOD", "") or ""),
            request_uri=path,
            referer=headers.get("HTTP_REFERER", ""),
            remote_addr=str(environ.get("REMOTE_ADDR", "") or ""),
            user_agent=headers.get("HTTP_USER_AGENT", ""),
            headers=headers,
        )

    @classmethod
    def from_process(cls, argv=None) -> "Environment":
        """Build for CLI/batch mode: no request, command line as request URI."""
        try:
            hostname = socket.gethostname()
        except OSError:
            hostname = ""
        return cls(
            cli=True,
            argv=tuple(sys.argv if argv is None else argv),
            hostname=hostname,
        )

    def header(self, name: str) -> str:
        return self.headers.get(header_key(name), "")
