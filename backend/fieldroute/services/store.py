"""Helpers shared by services that talk to the relational store."""

import json
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from fieldroute.exceptions import RemoteUnavailable
from fieldroute.models.audit_log import AuditAction, AuditLog
from fieldroute.utils.logging import get_logger

logger = get_logger("services.store")


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Translate connectivity failures of the store into ``RemoteUnavailable``."""
    try:
        yield
    except (OperationalError, InterfaceError) as e:
        logger.warning("store_unreachable", operation=operation, error=str(e))
        raise RemoteUnavailable(f"Data store unavailable during {operation}") from e


def record_audit(
    db: AsyncSession,
    *,
    user_id: Optional[int],
    action: AuditAction,
    entity_type: str,
    entity_id: int,
    payload: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    audit = AuditLog(
        user_id=user_id,
        action=action.value,
        entity_type=entity_type,
        entity_id=entity_id,
        payload=json.dumps(payload, default=str) if payload is not None else None,
    )
    db.add(audit)
    return audit
