"""Per-request context (request id, acting user) carried into log records."""

from __future__ import annotations

from contextvars import ContextVar, Token
import logging
from typing import Optional

_request_id_var: ContextVar[str] = ContextVar("request_id", default="")
_actor_id_var: ContextVar[str] = ContextVar("actor_id", default="")


def set_request_id(request_id: Optional[str]) -> Token[str]:
    return _request_id_var.set(request_id or "")


def reset_request_id(token: Token[str]) -> None:
    _request_id_var.reset(token)


def get_request_id(default: Optional[str] = None) -> Optional[str]:
    value = _request_id_var.get()
    return value if value else default


def set_actor_id(actor_id: Optional[str]) -> Token[str]:
    return _actor_id_var.set(actor_id or "")


def get_actor_id(default: str = "anonymous") -> str:
    value = _actor_id_var.get()
    return value if value else default


class RequestContextFilter(logging.Filter):
    """Stamp request_id and actor_id on every record passing the handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = get_request_id("no-request")
        if not hasattr(record, "actor_id"):
            record.actor_id = get_actor_id()
        return True


def attach_request_context_filter(logger: Optional[logging.Logger] = None) -> None:
    target = logger or logging.getLogger()
    for handler in target.handlers:
        if not any(isinstance(f, RequestContextFilter) for f in handler.filters):
            handler.addFilter(RequestContextFilter())
