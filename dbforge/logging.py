import logging, sys

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [rid=%(request_id)s cid=%(correlation_id)s] %(message)s"

_RESERVED = {
    "name", "msg", "args", "levelname", "levelno", "pathname", "filename", "module",
    "exc_info", "exc_text", "stack_info", "lineno", "funcName", "created", "msecs",
    "relativeCreated", "thread", "threadName", "process", "processName", "message", "asctime",
}


def safe_extra(extra: dict) -> dict:
    out = {}
    for k, v in extra.items():
        out[f"ctx_{k}" if k in _RESERVED else k] = v
    return out


def setup_logging(level: str = "INFO") -> logging.Logger:
    from dbforge.middleware.correlation import CorrelationIdFilter

    root = logging.getLogger()
    root.setLevel(level.upper())
    if not any(getattr(h, "_dbforge", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler.addFilter(CorrelationIdFilter())
        handler._dbforge = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    return logging.getLogger("dbforge")
