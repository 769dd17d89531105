import logging
import logging.handlers
import contextvars
import time
from pathlib import Path
from typing import Dict, List, Optional

from core.config import settings
from core.security import verify_token
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

LOG_FORMAT = "%(levelname)s - %(asctime)s - %(user_id)s - %(api)s - %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

user_id_var = contextvars.ContextVar("user_id", default="-")
api_var = contextvars.ContextVar("api", default="-")

access_logger = logging.getLogger("eco_pulse.access")


class ContextFilter(logging.Filter):
    """Stamp each record with the caller and endpoint of the current request."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.user_id = user_id_var.get()
        record.api = api_var.get()
        return True


def _level(name: Optional[str]) -> int:
    level = logging.getLevelName((name or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def _daily_file(path: Path, level: int, formatter: logging.Formatter) -> logging.Handler:
    # Rotated at UTC midnight; LOG_TTL_DAYS old files are kept
    handler = logging.handlers.TimedRotatingFileHandler(
        filename=str(path),
        when="midnight",
        backupCount=max(settings.LOG_TTL_DAYS, 0),
        encoding="utf-8",
        utc=True,
    )
    handler.suffix = "%Y-%m-%d"
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _handlers(level: int, log_dir: Path) -> Dict[str, logging.Handler]:
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers = {
        "app": _daily_file(log_dir / "app.log", level, formatter),
        "access": _daily_file(log_dir / "access.log", level, formatter),
        "error": _daily_file(log_dir / "error.log", logging.WARNING, formatter),
        "console": logging.StreamHandler(),
    }
    handlers["console"].setLevel(level)
    handlers["console"].setFormatter(formatter)
    for handler in handlers.values():
        handler.addFilter(ContextFilter())
    return handlers


# logger name -> handler keys; "" is the root logger
ROUTES: Dict[str, List[str]] = {
    "": ["app", "error", "console"],
    "uvicorn": ["app", "error", "console"],
    "uvicorn.error": ["app", "error", "console"],
    "fastapi": ["app", "error", "console"],
    "uvicorn.access": ["access"],
    "eco_pulse.access": ["access", "console"],
}


def configure_logging(app_logger_name: Optional[str] = None) -> logging.Logger:
    """Route the root, app, Uvicorn and access loggers to dated files under LOG_DIR.

    Safe to call more than once: existing handlers on routed loggers are replaced.
    """
    log_dir = Path(settings.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)
    level = _level(settings.LOG_LEVEL)
    handlers = _handlers(level, log_dir)

    app_name = app_logger_name or "eco_pulse"
    routes = dict(ROUTES)
    routes.setdefault(app_name, ROUTES[""])

    for name, keys in routes.items():
        target = logging.getLogger(name)
        for existing in list(target.handlers):
            target.removeHandler(existing)
        for key in keys:
            target.addHandler(handlers[key])
        target.setLevel(level)
        if name:
            target.propagate = False

    return logging.getLogger(app_name)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds caller id and endpoint for the duration of a request and writes one access line."""

    async def dispatch(self, request: Request, call_next):
        user_id = "-"
        auth_header = request.headers.get("authorization") or ""
        if auth_header.startswith("Bearer "):
            payload = verify_token(auth_header.split(" ", 1)[1])
            if payload:
                user_id = payload["sub"]

        user_token = user_id_var.set(user_id)
        api_token = api_var.set(f"{request.method} {request.url.path}")
        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            access_logger.info(f"{status_code} in {(time.perf_counter() - start) * 1000.0:.1f} ms")
            user_id_var.reset(user_token)
            api_var.reset(api_token)
