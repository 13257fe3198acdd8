"""
Atomic unit of work over an AsyncSession.

All writes of a multi-row aggregate go through `atomic_unit`: either every
statement inside the block is committed or the session is rolled back to
its state before the block.
"""
import logging
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from trackle.errors import AppError, DatabaseError, InternalError

logger = logging.getLogger("trackle.transaction")


@asynccontextmanager
async def atomic_unit(db: AsyncSession, context: str):
    """
    Run the enclosed block as one transaction.

    Args:
        db: Session for the current request
        context: Description used in the error message when the unit fails

    Raises:
        AppError: Re-raised unchanged after rollback
        DatabaseError: When the store rejects a statement or the commit
        InternalError: For any other fault inside the block
    """
    try:
        yield db
        await db.commit()
    except AppError:
        await db.rollback()
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        raise DatabaseError(f"Failed to {context}", e) from e
    except Exception as e:
        await db.rollback()
        logger.exception("Unexpected fault while trying to %s", context)
        raise InternalError("Internal server error", e) from e
