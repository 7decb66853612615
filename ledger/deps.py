"""Common FastAPI dependencies for consistent type annotations.

Usage:
    from ledger.deps import CurrentEntityId, DbSession

    async def my_endpoint(db: DbSession, entity_id: CurrentEntityId):
        ...
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ledger.auth import get_current_entity_id
from ledger.database import get_db

DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentEntityId = Annotated[str, Depends(get_current_entity_id)]

__all__ = ["CurrentEntityId", "DbSession"]
