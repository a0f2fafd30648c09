"""
stakegov logging

One process-wide configuration for every ledger module: a rich console
handler (or a plain stream when highlighting is off) and an optional
rotating file, both behind a formatter that strips terminal escapes from
caller-supplied text such as proposal titles.

Settings come from stakegov.constants (LOG_LEVEL, LOG_FORMAT, ...), which
reads them from the environment through python-dotenv.

Usage:
    >>> from stakegov.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Pool initialized")
"""

import logging
import logging.handlers
import re
import sys
import threading
import time
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.highlighter import RegexHighlighter
from rich.logging import RichHandler
from rich.theme import Theme

from .constants import (
    LOG_BACKUP_COUNT,
    LOG_CONSOLE_HIGHLIGHTING,
    LOG_DATE_FORMAT,
    LOG_FILE_ENABLED,
    LOG_FORMAT,
    LOG_LEVEL,
    LOG_MAX_FILE_SIZE,
)

LOG_FILE_PATH = Path(__file__).parent.parent / "logs" / "stakegov.log"

# A %-style field such as "%(levelname)s"; group 1 is empty when the "%" is missing
_FIELD_RE = re.compile(r"(%?)\([A-Za-z_]\w*\)[A-Za-z]")
_STRFTIME_DIRECTIVE_RE = re.compile(r"%[EO]?[-_0^#]*[A-Za-z]")

LEDGER_THEME = Theme({
    "stakegov.address":        "cyan",
    "stakegov.amount":         "bold white",
    "stakegov.arrow":          "bold yellow",
    "stakegov.level_critical": "bold red reverse",
    "stakegov.level_debug":    "bold dim",
    "stakegov.level_error":    "bold red",
    "stakegov.level_info":     "bold green",
    "stakegov.level_warning":  "bold yellow",
    "stakegov.logger_name":    "magenta",
    "stakegov.proposal":       "bold magenta",
    "stakegov.rejected":       "bold red",
    "stakegov.timestamp":      "bold cyan",
})


def _fallback_notice(message: str) -> None:
    # Logging is not configured yet when format settings are checked
    stamp = time.strftime(str(LOG_DATE_FORMAT.default()))
    print(f"{stamp} - stakegov.logger - {message}", file=sys.stderr)


class TerminalSafeFormatter(logging.Formatter):
    """Formatter that drops ANSI escapes and control characters (CWE-117)."""

    _ansi_re = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]|\x1b[@-Z\\-_]")
    # Tab and newline survive, everything else below 0x20 (and DEL) goes
    _control_re = re.compile(r"[\x00-\x08\x0B-\x1F\x7F]")

    @classmethod
    def sanitize(cls, text: str) -> str:
        if not text:
            return text
        return cls._control_re.sub("", cls._ansi_re.sub("", text))

    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


class LedgerLogHighlighter(RegexHighlighter):
    """Colours addresses, proposal ids, amounts, arrows and rejections."""

    base_style = "stakegov."
    highlights = [
        r"(?P<timestamp>^(.*?)UTC)",
        r"(?P<level_debug>\bDEBUG\b)",
        r"(?P<level_info>\bINFO\b)",
        r"(?P<level_warning>\bWARNING\b)",
        r"(?P<level_error>\bERROR\b)",
        r"(?P<level_critical>\bCRITICAL\b)",
        r"\-\s+\w+\s+-\s+(?P<logger_name>[\w.]+)(?=\s-\s)",
        r"(?P<address>\b0x[0-9a-fA-F]{40}\b)",
        r"(?P<proposal>#\d+)",
        r"(?P<amount>(?<=[=\s])\d[\d_]*(?=\s|$|,|\)))",
        r"(?P<arrow>→)",
        r"(?P<rejected>\bREJECTED\b)",
    ]


class LogManager:
    """
    Process-wide logging setup, applied once.

    The first ``get_logger`` call configures the root logger from
    stakegov.constants; ``configure(force=True)`` replaces it later, which
    is how a level taken from LedgerConfig is applied.
    """

    _instance: Optional["LogManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "LogManager":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._configured = False
        return cls._instance

    @staticmethod
    def validate_log_format(log_format: str) -> str:
        """Return ``log_format`` if it formats a record cleanly, else the default."""
        default = str(LOG_FORMAT.default())
        if not log_format:
            return default
        log_format = str(log_format)
        try:
            if any(not m.group(1) for m in _FIELD_RE.finditer(log_format)):
                raise ValueError("field without a leading '%'")
            record = logging.LogRecord("stakegov", logging.INFO, "", 0, "check", (), None)
            logging.Formatter(fmt=log_format).format(record)
        except (ValueError, KeyError, TypeError) as e:
            _fallback_notice(f"Invalid log format ({e}), using default")
            return default
        return log_format

    @staticmethod
    def validate_date_format(date_format: str) -> str:
        """Return ``date_format`` if it has at least one strftime directive, else the default."""
        default = str(LOG_DATE_FORMAT.default())
        if not date_format:
            return default
        date_format = str(date_format)
        if not _STRFTIME_DIRECTIVE_RE.search(date_format):
            _fallback_notice("Invalid date format, using default")
            return default
        try:
            time.strftime(date_format, time.gmtime(0))
        except ValueError:
            _fallback_notice("Invalid date format, using default")
            return default
        return date_format

    def configure(
        self,
        log_level: Optional[str] = None,
        log_file: Optional[Path] = None,
        console_output: bool = True,
        file_output: Optional[bool] = None,
        force: bool = False,
    ) -> None:
        with self._lock:
            if self._configured and not force:
                return

            level = getattr(logging, str(log_level or LOG_LEVEL).upper(), logging.INFO)
            formatter = TerminalSafeFormatter(
                fmt=self.validate_log_format(LOG_FORMAT),
                datefmt=self.validate_date_format(LOG_DATE_FORMAT) + " UTC",
            )
            formatter.converter = time.gmtime

            handlers = []
            if console_output:
                handlers.append(self._console_handler())
            if bool(LOG_FILE_ENABLED) if file_output is None else file_output:
                handlers.append(self._file_handler(log_file or LOG_FILE_PATH))

            root = logging.getLogger()
            root.setLevel(level)
            root.handlers.clear()
            for handler in handlers:
                handler.setLevel(level)
                handler.setFormatter(formatter)
                root.addHandler(handler)

            self._configured = True

    @staticmethod
    def _console_handler() -> logging.Handler:
        if not LOG_CONSOLE_HIGHLIGHTING:
            return logging.StreamHandler(sys.stdout)
        return RichHandler(
            console=Console(theme=LEDGER_THEME, highlight=False),
            highlighter=LedgerLogHighlighter(),
            keywords=[],
            rich_tracebacks=True,
            show_path=False,
            show_time=False,
            show_level=False,
            markup=False,
        )

    @staticmethod
    def _file_handler(path: Path) -> logging.Handler:
        path.parent.mkdir(parents=True, exist_ok=True)
        return logging.handlers.RotatingFileHandler(
            filename=str(path),
            maxBytes=LOG_MAX_FILE_SIZE,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )

    def get_logger(self, name: str) -> logging.Logger:
        if not self._configured:
            self.configure()
        return logging.getLogger(name)

    @property
    def is_configured(self) -> bool:
        return self._configured


_manager = LogManager()


def get_logger(name: str) -> logging.Logger:
    """Logger for ``name``, configuring the process on first use."""
    return _manager.get_logger(name)


def configure_logging(**kwargs) -> None:
    """Replace the current configuration, e.g. with a level from LedgerConfig."""
    _manager.configure(force=True, **kwargs)
