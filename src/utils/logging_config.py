import os
import sys

import structlog

LOC_WIDTH_SHORT = 30
LOC_WIDTH_LONG = 60

# ANSI colour per log level
LEVEL_COLORS = {
    "DEBUG": "\033[36m",       # cyan
    "INFO": "\033[32m",        # green
    "WARNING": "\033[33m",     # yellow
    "ERROR": "\033[31m",       # red
    "CRITICAL": "\033[1;31m",  # bold red
}
DIM = "\033[38;5;244m"
RESET = "\033[0m"


def _console_renderer(use_colors: bool):
    """Build the human-readable renderer: ``[ts] [LEVEL] [file:line] event`` plus indented fields."""

    def render(logger, log_method, event_dict):
        timestamp = event_dict.pop("timestamp", "")
        pathname = event_dict.pop("pathname", "")
        filename = event_dict.pop("filename", "")
        lineno = event_dict.pop("lineno", "")
        level = event_dict.pop("level", "").upper()

        if filename and lineno:
            location, loc_width = f"{filename}:{lineno}", LOC_WIDTH_SHORT
        elif pathname and lineno:
            location, loc_width = f"{pathname}:{lineno}", LOC_WIDTH_LONG
        else:
            location, loc_width = filename or pathname or "unknown", LOC_WIDTH_SHORT

        if use_colors:
            shown_ts = f"{DIM}{timestamp}{RESET}"
            shown_level = f"{LEVEL_COLORS.get(level, '')}{level:<7}{RESET}"
        else:
            shown_ts = timestamp
            shown_level = f"{level:<7}"

        header = f"[{shown_ts}] [{shown_level}] [{location:<{loc_width}}] "
        # Padding is computed on the visible width, without escape codes
        visible_header = f"[{timestamp}] [{level:<7}] [{location:<{loc_width}}] "

        parts = [str(event_dict.pop("event", ""))]
        extra = {k: v for k, v in event_dict.items() if k not in ("service", "func_name")}
        padding = " " * len(visible_header)
        for key, value in extra.items():
            parts.append(f"\n{padding}- {key}: {value}")

        return f"{header}{''.join(parts)}"

    return render


def configure_logging(
    log_level: str = "INFO",
    json_logs: bool = False,
    include_timestamps: bool = True,
    service_name: str = "box-portal",
) -> None:
    """Configure structlog for the portal."""
    level = getattr(
        structlog.stdlib.logging, log_level.upper(), structlog.stdlib.logging.INFO
    )

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]
    if include_timestamps:
        shared_processors.append(structlog.processors.TimeStamper(fmt="iso"))

    shared_processors.append(
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.FILENAME,
                structlog.processors.CallsiteParameter.LINENO,
                structlog.processors.CallsiteParameter.PATHNAME,
            ]
        )
    )

    if json_logs or os.getenv("LOG_FORMAT", "").lower() == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        use_colors = (
            "NO_COLOR" not in os.environ
            and hasattr(sys.stderr, "isatty")
            and sys.stderr.isatty()
        )
        renderer = _console_renderer(use_colors)

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.WriteLoggerFactory(sys.stderr),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=service_name)


def get_logger(name: str = None) -> structlog.BoundLogger:
    """Return a configured logger instance."""
    if name:
        return structlog.get_logger(name)
    return structlog.get_logger()


def configure_from_env() -> None:
    """Apply logging settings from the environment.

    APP_ENV=development lowers the default level to DEBUG; an explicit
    LOG_LEVEL always wins.
    """
    app_env = os.getenv("APP_ENV", "production").lower()
    default_log_level = "DEBUG" if app_env in ("development", "dev") else "INFO"

    configure_logging(
        log_level=os.getenv("LOG_LEVEL", default_log_level),
        json_logs=os.getenv("LOG_FORMAT", "").lower() == "json",
        service_name=os.getenv("SERVICE_NAME", "box-portal"),
    )


def token_suffix(token: str | None, length: int = 10) -> str:
    """Tail of a bearer token, safe for logs and cache keys."""
    if not token:
        return ""
    return token[-length:]
