"""Request ID helper for endpoints.

Request ids are bound by ``RequestIdMiddleware`` onto ``request.state`` and by
the observability middleware into the logging context. Error handlers read
them here so every JSON error body carries one.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Request

from roundsearch.obs import logging as obs_logging

REQUEST_ID_ATTR = "request_id"


def get_request_id(request: Optional[Request] = None, default: str = "unknown") -> str:
    if request is not None:
        rid = getattr(request.state, REQUEST_ID_ATTR, None)
        if rid:
            return str(rid)
    return obs_logging.current_request_id() or default
