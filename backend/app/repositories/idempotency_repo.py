from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db import SessionLocal  # short-lived sessions so status changes are visible at once
from app.models.idempotency import IdempotencyRecord, IdempotencyStatus
from app.utils.log import get_logger

log = get_logger("idempotency")


class IdempotencyRepository:
    def __init__(self, db: Session):
        # db is the caller's session (longer-lived)
        self.db = db

    def get(self, key: str) -> Optional[IdempotencyRecord]:
        """
        Return the record for `key`, read fresh from the DB rather than from the
        caller session's identity map.
        """
        rec = (
            self.db.query(IdempotencyRecord)
            .filter(IdempotencyRecord.key == key)
            .populate_existing()
            .first()
        )
        return rec

    def begin(self, key: str, operation: str) -> Tuple[Optional[IdempotencyRecord], bool]:
        """
        Atomically ensure an idempotency row exists.
        Returns (record, created):
          - created == True  -> this call inserted the IN_PROGRESS row and owns the operation
          - created == False -> a row already existed (concurrent or earlier request)
        """
        created = False
        log.debug(f"begin(): trying insert key={key!r}")
        try:
            with SessionLocal() as s:
                s.add(
                    IdempotencyRecord(
                        key=key, operation=operation, status=IdempotencyStatus.IN_PROGRESS
                    )
                )
                s.commit()
                created = True
        except IntegrityError:
            log.debug(f"begin(): insert collision for key={key!r}")
        return self.get(key), created

    def reopen(self, key: str) -> bool:
        """
        Move a FAILED record back to IN_PROGRESS so the operation can be retried
        under the same key. Returns False if another request got there first.
        """
        with SessionLocal() as s:
            n = (
                s.query(IdempotencyRecord)
                .filter(
                    IdempotencyRecord.key == key,
                    IdempotencyRecord.status == IdempotencyStatus.FAILED,
                )
                .update(
                    {"status": IdempotencyStatus.IN_PROGRESS, "last_error": None},
                    synchronize_session=False,
                )
            )
            s.commit()
        log.debug(f"reopen(): key={key!r} reopened={bool(n)}")
        return n == 1

    def mark_completed(self, key: str, response_body: dict):
        with SessionLocal() as s:
            rec = s.query(IdempotencyRecord).filter(IdempotencyRecord.key == key).first()
            if not rec:
                raise RuntimeError("Idempotency record missing for key: " + str(key))
            rec.status = IdempotencyStatus.COMPLETED
            rec.response_body = response_body
            s.commit()
        log.debug(f"mark_completed(): key={key!r}")

    def mark_failed(self, key: str, error_message: str):
        with SessionLocal() as s:
            rec = s.query(IdempotencyRecord).filter(IdempotencyRecord.key == key).first()
            if not rec:
                return
            rec.status = IdempotencyStatus.FAILED
            rec.last_error = error_message[:1024]
            s.commit()
        log.debug(f"mark_failed(): key={key!r} error={error_message!r}")

    def fail_stale(self, before: datetime) -> int:
        """FAILED for IN_PROGRESS records untouched since `before`, so their key can be retried."""
        n = (
            self.db.query(IdempotencyRecord)
            .filter(
                IdempotencyRecord.status == IdempotencyStatus.IN_PROGRESS,
                IdempotencyRecord.updated_at < before,
            )
            .update(
                {"status": IdempotencyStatus.FAILED, "last_error": "Abandoned in progress"},
                synchronize_session=False,
            )
        )
        self.db.flush()
        return n
