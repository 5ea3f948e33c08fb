"""Log file sink: path resolution, locked appends, committable check and truncate."""

import fcntl
import logging
import os
import stat
from datetime import datetime

from jsonlog.config import SECTION
from jsonlog.errors import MaintenanceOnly, SinkWriteFailure
from jsonlog.message import describe_exception

logger = logging.getLogger(__name__)

# Default webserver log dirs of the major *nix distros.
LOG_DIR_DEFAULTS = (
    "/var/log/apache2",
    "/var/log/httpd",
    "/var/log/nginx",
)

SUBDIR = "jsonlog"
FILE_TIME_DEFAULT = "Ymd"
FILE_EXTENSION = ".json.log"

# committable() failure codes.
CODE_OK = 0
CODE_PATH_UNDETERMINED = 1
CODE_PATH_MISSING = 10
CODE_PATH_FRAGMENT_NOT_DIR = 11
CODE_MODE_UNDETERMINED = 12
CODE_PATH_CREATE_FAILED = 13
CODE_PATH_NOT_DIR = 20
CODE_PATH_NOT_WRITABLE = 30
CODE_PATH_NOT_READABLE = 40
CODE_FILE_NOT_FILE = 50
CODE_FILE_NOT_WRITABLE = 60
CODE_FILE_CREATE_FAILED = 70

ANCESTOR_LIMIT = 10

# Compact date letters -> strftime.
_DATE_LETTERS = {
    "Y": "%Y",
    "y": "%y",
    "m": "%m",
    "n": "%-m",
    "d": "%d",
    "j": "%-d",
    "H": "%H",
    "G": "%-H",
    "i": "%M",
    "s": "%S",
}


def date_pattern(pattern: str) -> str:
    """'Ymd' style pattern to strftime; strftime patterns pass through."""
    if "%" in pattern:
        return pattern
    return "".join(_DATE_LETTERS.get(ch, ch) for ch in pattern)


def build_filename(site_id: str, file_time, now: datetime | None = None) -> str:
    """<siteId>[.<date>].json.log; no date part if file_time is empty or 'none'."""
    name = site_id
    if file_time and str(file_time).strip().lower() != "none":
        name += "." + (now or datetime.now()).strftime(date_pattern(str(file_time)))
    return name + FILE_EXTENSION


def is_group_write(mode: int) -> bool:
    return bool(mode & stat.S_IWGRP)


def ensure_path(path: str, mode: int) -> None:
    """Create missing directories of path, each chmod'ed to mode."""
    missing = []
    current = os.path.abspath(path)
    while current and not os.path.exists(current):
        missing.append(current)
        parent = os.path.dirname(current)
        if parent == current:
            break
        current = parent
    for directory in reversed(missing):
        os.mkdir(directory, mode)
        # mkdir is subject to umask.
        os.chmod(directory, mode)


def host_log_dir() -> str:
    """Directory of the host's own error log, if the root logger writes to a file.

    Handlers writing to the null device are ignored.
    """
    for handler in logging.getLogger().handlers:
        filename = getattr(handler, "baseFilename", None)
        if not isinstance(handler, logging.FileHandler) or not filename:
            continue
        if os.path.realpath(filename) == os.path.realpath(os.devnull):
            continue
        return os.path.dirname(filename)
    return ""


class LogSink:
    """Appends formatted events to <path>/<siteId>[.<date>].json.log.

    The directory is resolved once and cached; the file name is rebuilt on
    every write, so a long-lived sink moves on to the next file when the
    date part changes. A write failure is reported to the stdlib logger and
    returned as False; it never raises.
    """

    def __init__(self, config, site_id, cli: bool = True, log_dir_defaults=LOG_DIR_DEFAULTS):
        self._config = config
        # Callable (no_save) -> site id, shared with the column resolver.
        self._site_id = site_id
        self.cli = cli
        self._log_dir_defaults = tuple(log_dir_defaults)
        self._path = ""
        self._file_time = None

    def resolve_path(self, no_save: bool = False) -> str:
        """Configured path (made absolute), else host log dir + /jsonlog; '' if undetermined."""
        path = str(self._config.get(SECTION, "path", "") or "")
        if path:
            if not os.path.isabs(path):
                path = os.path.abspath(path)
            self._config.set(SECTION, "path", path)
            return path

        base = host_log_dir()
        if not base:
            for candidate in self._log_dir_defaults:
                if os.path.exists(candidate):
                    base = candidate
                    break

        if base:
            path = os.path.join(base, SUBDIR)
            if not no_save:
                self._config.set(SECTION, "path", path)
            return path

        logger.error("jsonlog, site ID[%s], cannot determine log dir.", self._site_id(True))
        return ""

    def resolve_file(self) -> str:
        """Current log file; '' if the directory cannot be determined."""
        if not self._path:
            self._path = self.resolve_path()
            if not self._path:
                return ""
        if self._file_time is None:
            self._file_time = self._config.get(SECTION, "file_time", FILE_TIME_DEFAULT)
        return os.path.join(self._path, build_filename(self._site_id(True), self._file_time))

    def _append(self, path: str, data: str, mode: str = "a") -> None:
        try:
            with open(path, mode, encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_EX)
                try:
                    f.write(data)
                    f.flush()
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except OSError as exc:
            raise SinkWriteFailure(path, exc) from exc

    def commit(self, line: str) -> bool:
        """Append one formatted event plus newline under an exclusive lock."""
        file = self.resolve_file()
        if not file:
            return False
        try:
            self._append(file, line + "\n")
        except SinkWriteFailure as exc:
            logger.error(
                "jsonlog, site ID[%s], failed to write to file[%s]: %s",
                self._site_id(True), file, exc.cause,
            )
            return False
        return True

    def truncate(self) -> str:
        """Overwrite the current log file with a single newline.

        Returns the file path, or '' on failure. Maintenance only: raises
        MaintenanceOnly when bound to an inbound request.
        """
        if not self.cli:
            raise MaintenanceOnly("JsonLog truncate is only allowed in CLI mode.")
        file = self.resolve_file()
        if not file:
            return ""
        try:
            self._append(file, "\n", mode="w")
        except SinkWriteFailure as exc:
            logger.error(
                "jsonlog, site ID[%s], failed to truncate file[%s]: %s",
                self._site_id(True), file, exc.cause,
            )
            return ""
        return file

    def _detail(self, label: str, value: str) -> str:
        """CLI callers get the explicit path in messages."""
        return f", {label}[{value}]" if self.cli else ""

    def committable(self, enable: bool = False):
        """Check (and with enable, try to create) path and file.

        Returns (success, code, messages).
        """
        success = False
        code = CODE_OK
        msgs: list[str] = []
        group_write = False

        path = self.resolve_path()
        if not path:
            return False, CODE_PATH_UNDETERMINED, ["Cannot determine path."]

        if not os.path.exists(path):
            if not enable:
                code = CODE_PATH_MISSING
                msgs.append(f"Path does not exist{self._detail('path', path)}.")
            else:
                mode = None
                ancestor = path
                for _ in range(ANCESTOR_LIMIT):
                    parent = os.path.dirname(ancestor)
                    if not parent or parent == ancestor:
                        break
                    ancestor = parent
                    if os.path.exists(ancestor):
                        if not os.path.isdir(ancestor):
                            code = CODE_PATH_FRAGMENT_NOT_DIR
                            msgs.append(
                                f"A fragment of path is not a directory{self._detail('path', path)}."
                            )
                        else:
                            mode = stat.S_IMODE(os.stat(ancestor).st_mode)
                            group_write = is_group_write(mode)
                        break
                if not code:
                    if mode is None:
                        code = CODE_MODE_UNDETERMINED
                        msgs.append(f"Cannot determine file mode{self._detail('path', path)}.")
                    else:
                        try:
                            ensure_path(path, mode)
                            msgs.append("Created path" + (f"[{path}]" if self.cli else "") + ".")
                        except OSError as exc:
                            code = CODE_PATH_CREATE_FAILED
                            msgs.append("Failed to create path" + (f"[{path}]" if self.cli else "") + ".")
                            msgs.append(describe_exception(exc))
        elif not os.path.isdir(path):
            code = CODE_PATH_NOT_DIR
            msgs.append(f"Path is not a directory{self._detail('path', path)}.")
        else:
            group_write = is_group_write(stat.S_IMODE(os.stat(path).st_mode))

        if code:
            return success, code, msgs

        if not os.access(path, os.W_OK):
            return False, CODE_PATH_NOT_WRITABLE, msgs + [
                f"Path is not writable{self._detail('path', path)}."
            ]
        msgs.append("Path is writable.")
        if not os.access(path, os.R_OK):
            # Warning only; the file checks below decide success.
            code = CODE_PATH_NOT_READABLE
            msgs.append(f"Path is not readable, may not be a problem{self._detail('path', path)}.")

        file = self.resolve_file()
        if os.path.exists(file):
            if not os.path.isfile(file):
                code = CODE_FILE_NOT_FILE
                msgs.append(f"File is not a file{self._detail('file', file)}.")
            elif not os.access(file, os.W_OK) or not self._touch(file):
                code = CODE_FILE_NOT_WRITABLE
                msgs.append(f"File is not writable{self._detail('file', file)}.")
            else:
                success = True
                msgs.append(f"File is writable{self._detail('file', file)}.")
        elif not self._touch(file):
            code = CODE_FILE_CREATE_FAILED
            msgs.append("Failed to create file" + (f"[{file}]" if self.cli else "") + ".")
        else:
            success = True
            msgs.append("Created the file" + (f"[{file}]" if self.cli else "") + ".")

        if success and group_write:
            try:
                os.chmod(file, 0o660)
            except OSError:
                msgs.append(f"Failed to chmod{self._detail('file', file)}.")

        return success, code, msgs

    @staticmethod
    def _touch(file: str) -> bool:
        try:
            with open(file, "a", encoding="utf-8"):
                pass
            os.utime(file, None)
        except OSError:
            return False
        return True
