"""Replay protection for requests carrying an Idempotency-Key header."""

import hashlib
import json
import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import ProblemDetailsException
from ..models.idempotency import IdempotencyRecord

logger = logging.getLogger(__name__)


class IdempotencyMismatchError(ProblemDetailsException):
    """Exception when an idempotency key is reused with a different request body."""

    def __init__(self, idempotency_key: str, operation: str):
        super().__init__(
            status_code=422,
            title="Idempotency Key Mismatch",
            detail=(
                f"Idempotency key '{idempotency_key}' was already used for "
                f"'{operation}' with a different request body"
            ),
            type_uri="https://bookeros.com/problems/idempotency-key-mismatch",
            extensions={
                "code": "IDEMPOTENCY_KEY_MISMATCH",
                "retryable": False,
                "idempotency_key": idempotency_key,
                "operation": operation,
            },
        )


class IdempotencyService:
    """Stores and replays responses keyed by (Idempotency-Key, operation)."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def compute_request_hash(request_body: dict[str, Any]) -> str:
        """SHA-256 of the body serialized with sorted keys."""
        normalized = json.dumps(request_body, sort_keys=True, separators=(",", ":"), default=str)
        return hashlib.sha256(normalized.encode("utf-8")).hexdigest()

    async def check(
        self,
        idempotency_key: str,
        operation: str,
        request_body: dict[str, Any],
    ) -> Optional[tuple[int, dict[str, Any]]]:
        """
        Look up a stored response for this key.

        Returns:
            Tuple of (status_code, response_body) for a replay, None for a new request

        Raises:
            IdempotencyMismatchError: If the key was used with a different body
        """
        request_hash = self.compute_request_hash(request_body)

        stmt = select(IdempotencyRecord).where(
            IdempotencyRecord.idempotency_key == idempotency_key,
            IdempotencyRecord.operation == operation,
            IdempotencyRecord.expires_at > datetime.utcnow(),
        )
        result = await self.db.execute(stmt)
        record = result.scalar_one_or_none()

        if record is None:
            return None

        if record.request_body_hash != request_hash:
            logger.warning(
                "Idempotency key mismatch",
                extra={
                    "idempotency_key": idempotency_key,
                    "operation": operation,
                    "existing_hash": record.request_body_hash[:8],
                    "new_hash": request_hash[:8],
                }
            )
            raise IdempotencyMismatchError(idempotency_key, operation)

        logger.info(
            "Replaying idempotent response",
            extra={
                "idempotency_key": idempotency_key,
                "operation": operation,
                "status_code": record.response_status_code,
            }
        )
        return record.response_status_code, json.loads(record.response_body)

    async def store(
        self,
        idempotency_key: str,
        operation: str,
        request_body: dict[str, Any],
        status_code: int,
        response_body: dict[str, Any],
    ) -> None:
        expires_at = datetime.utcnow() + timedelta(seconds=settings.idempotency_ttl_seconds)
        record = IdempotencyRecord(
            idempotency_key=idempotency_key,
            operation=operation,
            request_body_hash=self.compute_request_hash(request_body),
            response_status_code=status_code,
            response_body=json.dumps(response_body, sort_keys=True, separators=(",", ":"), default=str),
            expires_at=expires_at,
        )

        try:
            self.db.add(record)
            await self.db.commit()
        except IntegrityError as e:
            # A concurrent request stored the same key first
            await self.db.rollback()
            logger.info(
                "Idempotency record already exists",
                extra={"idempotency_key": idempotency_key, "operation": operation, "error": str(e)}
            )
            return

        logger.info(
            "Stored idempotency record",
            extra={
                "idempotency_key": idempotency_key,
                "operation": operation,
                "status_code": status_code,
                "expires_at": expires_at.isoformat(),
            }
        )

    async def cleanup_expired_records(self, now: Optional[datetime] = None) -> int:
        """Delete expired records. Returns the number removed."""
        now = now or datetime.utcnow()
        result = await self.db.execute(delete(IdempotencyRecord).where(IdempotencyRecord.expires_at <= now))
        await self.db.commit()
        deleted = result.rowcount or 0
        if deleted:
            logger.info("Cleaned up expired idempotency records", extra={"deleted_count": deleted})
        return deleted
