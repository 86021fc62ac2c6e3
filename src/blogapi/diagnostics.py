"""
Diagnostics for the blog site client.

The DiagnosticSink is the event emitter every other component logs API
traffic through. Its verbosity is fixed when it is constructed: in
development and testing it emits request/response events with payloads, in
production it only emits errors, without payloads.
"""
import json
import logging
from typing import Any, Dict, Optional

from rich.logging import RichHandler

from blogapi.config import Environment, Settings

# Configure logger
logger = logging.getLogger(__name__)

API_LOGGER_NAME = "blogapi.api"

# Payloads longer than this are truncated in log lines
MAX_PAYLOAD_CHARS = 500


def _truncate(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float)):
        return value
    try:
        text = value if isinstance(value, str) else json.dumps(value, default=str)
    except (TypeError, ValueError):
        text = repr(value)
    if len(text) > MAX_PAYLOAD_CHARS:
        return text[:MAX_PAYLOAD_CHARS] + "..."
    return text


class DiagnosticSink:
    """
    Environment-aware structured event emitter.

    Emission is a side effect only: no method raises and none alters the
    data it is given.
    """

    def __init__(
        self,
        verbose: bool = False,
        logger_name: str = API_LOGGER_NAME,
    ):
        """
        Initialize the sink.

        Args:
            verbose: Emit info/debug/warning and API traffic events (development
                behavior). When False only errors are emitted.
            logger_name: Name of the underlying logger
        """
        self.verbose = verbose
        self._logger = logging.getLogger(logger_name)

    @classmethod
    def for_environment(cls, environment: Environment) -> "DiagnosticSink":
        return cls(verbose=environment != Environment.PRODUCTION)

    @classmethod
    def from_settings(cls, settings: Settings) -> "DiagnosticSink":
        return cls.for_environment(settings.app.environment)

    def _emit(
        self,
        level: int,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        # Handler failures are reported by logging itself, never raised here
        extra = {k: _truncate(v) for k, v in (context or {}).items()}
        self._logger.log(level, message, extra={"context": extra} if extra else None)

    def info(self, message: str, **context: Any) -> None:
        if self.verbose:
            self._emit(logging.INFO, message, context)

    def warn(self, message: str, **context: Any) -> None:
        if self.verbose:
            self._emit(logging.WARNING, message, context)

    def debug(self, message: str, **context: Any) -> None:
        if self.verbose:
            self._emit(logging.DEBUG, message, context)

    def error(self, message: str, error: Optional[BaseException] = None, **context: Any) -> None:
        """
        Log an error.

        In production only the message is emitted; error details and context
        are dropped.
        """
        if not self.verbose:
            self._emit(logging.ERROR, message)
            return

        if error is not None:
            context = {"error": str(error), **context}
        self._emit(logging.ERROR, message, context)

    def api_request(self, method: str, path: str, data: Any = None) -> None:
        if self.verbose:
            self._emit(
                logging.INFO,
                f"[API Request] {method} {path}",
                {"api_method": method, "api_path": path, "payload": data},
            )

    def api_response(self, method: str, path: str, status: int, data: Any = None) -> None:
        if self.verbose:
            self._emit(
                logging.INFO if 200 <= status < 300 else logging.WARNING,
                f"[API Response] {method} {path} - {status}",
                {"api_method": method, "api_path": path, "http_status": status, "payload": data},
            )

    def api_error(
        self, method: str, path: str, error: Optional[BaseException] = None, **context: Any
    ) -> None:
        self.error(f"API Error: {method} {path}", error, **context)


def configure_logging(settings: Settings) -> None:
    """
    Configure root logging once at process start.

    Console output goes through Rich. The level comes from settings; the API
    event logger follows the same level.
    """
    level = getattr(logging, settings.app.log_level.value)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )
    logging.getLogger(API_LOGGER_NAME).setLevel(level)
    logger.debug(
        f"Logging configured (level={settings.app.log_level.value}, "
        f"environment={settings.app.environment.value})"
    )
