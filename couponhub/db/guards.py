from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from couponhub.core.errors import ConflictError, CouponHubError, InternalError, StoreBusyError
from couponhub.core.metrics import store_busy_total


logger = logging.getLogger("couponhub.db")

_BUSY_MARKERS = ("database is locked", "database is busy", "could not obtain lock", "lock timeout", "deadlock")


def is_busy_error(exc: OperationalError) -> bool:
    text = str(getattr(exc, "orig", exc)).lower()
    return any(marker in text for marker in _BUSY_MARKERS)


@contextmanager
def store_guard(
    db: Session,
    *,
    operation: str,
    tenant_id: str | None,
    conflict_message: str | None = None,
    **context: object,
) -> Iterator[None]:
    """Translate driver faults into the service error taxonomy.

    The session is rolled back on every database failure and on service errors
    raised inside the block. Lock contention becomes
    StoreBusyError, integrity violations become ConflictError when the caller supplies
    a conflict message, and anything else is logged with its context and surfaced as a
    generic InternalError so driver text never reaches the client.
    """
    try:
        yield
    except IntegrityError as exc:
        db.rollback()
        if conflict_message is not None:
            logger.info(
                "store conflict",
                extra={"operation": operation, "tenant_id": tenant_id, **context},
            )
            raise ConflictError(conflict_message) from exc
        logger.exception(
            "store integrity failure",
            extra={"operation": operation, "tenant_id": tenant_id, **context},
        )
        raise InternalError() from exc
    except OperationalError as exc:
        db.rollback()
        if is_busy_error(exc):
            store_busy_total.labels(operation=operation).inc()
            logger.warning("store busy", extra={"operation": operation, "tenant_id": tenant_id, **context})
            raise StoreBusyError() from exc
        logger.exception("store failure", extra={"operation": operation, "tenant_id": tenant_id, **context})
        raise InternalError() from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("store failure", extra={"operation": operation, "tenant_id": tenant_id, **context})
        raise InternalError() from exc
    except CouponHubError:
        # Service errors raised mid-block must not leave pending rows behind.
        db.rollback()
        raise
