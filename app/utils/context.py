from contextvars import ContextVar, Token
from typing import Optional

request_id_context: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def get_request_id() -> Optional[str]:
    """Get the request ID of the request being served, if any."""
    return request_id_context.get()


def set_request_id(request_id: str) -> Token:
    """Bind the request ID for loggers; keep the token to restore it afterwards."""
    return request_id_context.set(request_id)


def reset_request_id(token: Token) -> None:
    request_id_context.reset(token)
