"""Shared request dependencies and Result → HTTP translation."""
from __future__ import annotations
from typing import Optional

from fastapi import Header, HTTPException, status

from adaptive_tutor.core import config
from adaptive_tutor.domain.common.result import CONFLICT, FORBIDDEN, INVALID, NOT_FOUND, Result

_STATUS_BY_CODE = {
    NOT_FOUND: status.HTTP_404_NOT_FOUND,
    INVALID: status.HTTP_400_BAD_REQUEST,
    FORBIDDEN: status.HTTP_403_FORBIDDEN,
    CONFLICT: status.HTTP_409_CONFLICT,
}


def current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Caller identity from the X-User-Id header; authentication happens upstream."""
    return (x_user_id or "").strip() or config.DEFAULT_USER_ID


def unwrap(result: Result):
    if not result.is_success:
        raise HTTPException(status_code=_STATUS_BY_CODE.get(result.code, 400), detail=result.error)
    return result.value
