"""
Request-scoped context carried through contextvars.

The API middleware sets a request id per HTTP request; the CLI sets one per
invocation. Log formatters read it back with get_request_id().
"""

import contextvars
import uuid

_request_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "flowvision_request_id", default=None
)


def get_request_id() -> str | None:
    return _request_id_var.get()


def set_request_id(request_id: str) -> contextvars.Token:
    """Set the request id. Returns the token needed to reset it."""
    return _request_id_var.set(request_id)


def generate_request_id(prefix: str = "req") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:16]}"


class RequestContext:
    """
    Scope a request id to a block.

        with RequestContext(prefix="cli") as ctx:
            logger.info("Running %s", command)   # carries ctx.request_id
    """

    def __init__(self, request_id: str | None = None, prefix: str = "req"):
        self.request_id = request_id or generate_request_id(prefix)
        self._token: contextvars.Token | None = None

    def __enter__(self) -> "RequestContext":
        self._token = set_request_id(self.request_id)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _request_id_var.reset(self._token)
            self._token = None
