"""Commit helper shared by the mutating services."""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from incidentdesk.core.errors import Unavailable

logger = logging.getLogger(__name__)


async def commit(db: AsyncSession, operation: str) -> None:
    """Commit the session; on storage failure roll back and raise ``Unavailable``."""
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("Commit failed during %s", operation)
        raise Unavailable(
            "Storage is unavailable; the change was not saved",
            details={"operation": operation},
        ) from e
