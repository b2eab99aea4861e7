"""API Dependencies — identity and dispatch lookups for route handlers.

Invariants:
    - Identity arrives already authenticated from the gateway as headers;
      this service never checks credentials for the caller itself
    - Unknown role names are a 400, never silently dropped

Design Decisions:
    - Dispatch and repository live on app.state, set by the lifespan (or by tests)
"""

from fastapi import Header, Request

from agora.core.domain_types import PlatformRole, UserId
from agora.core.entities import Principal
from agora.core.errors import InputValidationError
from agora.services.request_dispatch import RequestDispatch


def get_principal(
    x_user_id: str = Header(..., min_length=1, max_length=128),
    x_user_roles: str = Header("user"),
) -> Principal:
    roles = set()
    for name in filter(None, (r.strip().lower() for r in x_user_roles.split(","))):
        try:
            roles.add(PlatformRole(name))
        except ValueError:
            raise InputValidationError(f"Unknown role '{name}'", field="X-User-Roles")
    roles.add(PlatformRole.USER)
    return Principal(user_id=UserId(x_user_id), roles=frozenset(roles))


def get_dispatch(request: Request) -> RequestDispatch:
    return request.app.state.dispatch
