"""
Request dependencies.

Authentication happens upstream (auth gateway / identity provider). This
service trusts the identity headers it forwards and turns them into an
explicit ActorContext for every call.
"""

from typing import Optional

from fastapi import Header, HTTPException

from domain.context import ActorContext, Role
from domain.errors import ValidationError


def get_actor_context(
    x_actor_id: Optional[str] = Header(None, description="Authenticated user id"),
    x_business_id: Optional[str] = Header(None, description="Business (tenant) id of the user"),
    x_actor_role: str = Header(Role.ASSOCIATE.value, description="'Boss' or 'Associate'"),
) -> ActorContext:
    if not x_actor_id or not x_business_id:
        raise HTTPException(status_code=401, detail="Missing identity headers (X-Actor-Id, X-Business-Id)")

    try:
        role = Role(x_actor_role)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid X-Actor-Role: {x_actor_role!r}")

    try:
        return ActorContext(actor_id=x_actor_id, business_id=x_business_id, role=role)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
