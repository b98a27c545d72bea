from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header, HTTPException, status

CALLER_HEADER = "X-Caller-Id"


def caller_id_optional(
    caller_id: Optional[str] = Header(default=None, alias=CALLER_HEADER),
) -> Optional[str]:
    if not caller_id or not caller_id.strip():
        return None
    return caller_id.strip()


def require_caller_id(
    caller_id: Optional[str] = Depends(caller_id_optional),
) -> str:
    if not caller_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="auth_required")
    return caller_id
