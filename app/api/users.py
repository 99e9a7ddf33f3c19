from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.auth import require_identity
from app.domain import Identity


class Me(BaseModel):
    user: Identity


router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=Me)
def me(identity: Identity = Depends(require_identity)) -> Me:
    """Echo the identity carried by the bearer token."""
    return Me(user=identity)
