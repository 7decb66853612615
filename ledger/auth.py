"""Request-scoped entity (tenant) resolution from the bearer token."""

import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ledger.security import decode_access_token
from ledger.utils.exceptions import raise_unauthorized

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_entity_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    """Resolve the entity id every ledger query is scoped to."""
    if credentials is None:
        raise_unauthorized("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise_unauthorized("Could not validate credentials")

    entity_id = payload.get("sub")
    if not entity_id or not isinstance(entity_id, str):
        raise_unauthorized("Token missing subject")

    structlog.contextvars.bind_contextvars(entity_id=entity_id)
    return entity_id
