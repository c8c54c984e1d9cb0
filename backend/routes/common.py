import logging

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


def storage_failure(db: Session, exc: SQLAlchemyError, detail: str) -> HTTPException:
    """Roll back, log, and build the 500 a handler raises for a storage error."""
    db.rollback()
    logger.error('%s: %s', detail, exc, exc_info=exc)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)
