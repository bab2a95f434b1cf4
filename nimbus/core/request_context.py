"""
Request context carried across the event loop and the build threadpool.

run_in_threadpool copies the current context, so log records emitted by a
pipeline thread still carry the request_id and component_id of the request
that started it.
"""
import re
import uuid
from contextvars import ContextVar
from typing import Optional

REQUEST_ID_HEADER = "X-Request-Id"

# Incoming ids are echoed into headers and log lines; anything else is replaced
REQUEST_ID_PATTERN = re.compile(r"[A-Za-z0-9._-]{1,128}")

request_id_var: ContextVar[str] = ContextVar("request_id", default="")
component_id_var: ContextVar[str] = ContextVar("component_id", default="")


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set the request ID for the current context.

    A caller-supplied id (e.g. from an upstream proxy) is kept when it is
    well formed; otherwise a fresh uuid4 is used.
    """
    if request_id and REQUEST_ID_PATTERN.fullmatch(request_id):
        rid = request_id
    else:
        rid = str(uuid.uuid4())
    request_id_var.set(rid)
    return rid


def get_component_id() -> str:
    """Get the component being built in the current context, if any."""
    return component_id_var.get()


def set_component_id(component_id: str) -> None:
    component_id_var.set(component_id)
