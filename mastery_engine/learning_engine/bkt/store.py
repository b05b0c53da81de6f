"""
Mastery persistence - durable BKT state per (user, course, KC) and the attempt log.

Writes for one key are serialized in the database, not in the application:
- get-or-create is an INSERT ... ON CONFLICT DO NOTHING on the unique key
- the read takes a row lock where the backend supports it
- the write is an UPDATE guarded by the version that was read
A guarded write that matches no row means another writer got there first and
is reported as ConcurrencyConflict.
"""

import logging
from datetime import datetime, timedelta
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from mastery_engine.core.exceptions import ConcurrencyConflict
from mastery_engine.db.errors import translate_db_errors
from mastery_engine.learning_engine.bkt.core import BKTState
from mastery_engine.learning_engine.config import default_bkt_params
from mastery_engine.learning_engine.contracts import Clock
from mastery_engine.models.bkt import Attempt, MasteryRecord

logger = logging.getLogger(__name__)

MASTERY_KEY = ["user_id", "course_id", "kc_id"]


def _insert_for(db: Session):
    """Dialect-specific INSERT construct that supports ON CONFLICT."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Unsupported database dialect for upserts: {dialect}")


class MasteryStore:
    """Durable mastery records keyed on (user, course, KC)."""

    def __init__(self, db: Session, clock: Clock):
        self.db = db
        self.clock = clock

    def get(self, user_id: UUID, course_id: UUID, kc_id: UUID) -> MasteryRecord | None:
        with translate_db_errors("reading mastery record"):
            result = self.db.execute(
                select(MasteryRecord)
                .where(
                    MasteryRecord.user_id == user_id,
                    MasteryRecord.course_id == course_id,
                    MasteryRecord.kc_id == kc_id,
                )
                .execution_options(populate_existing=True)
            )
            return result.scalar_one_or_none()

    def get_many(
        self, user_id: UUID, course_id: UUID, kc_ids: list[UUID] | None = None
    ) -> dict[UUID, MasteryRecord]:
        """Existing records for a user's course, keyed by KC id."""
        query = select(MasteryRecord).where(
            MasteryRecord.user_id == user_id,
            MasteryRecord.course_id == course_id,
        )
        if kc_ids is not None:
            if not kc_ids:
                return {}
            query = query.where(MasteryRecord.kc_id.in_(kc_ids))
        query = query.execution_options(populate_existing=True)

        with translate_db_errors("reading mastery records"):
            records = self.db.execute(query).scalars().all()
        return {record.kc_id: record for record in records}

    def get_or_create_for_update(
        self,
        user_id: UUID,
        course_id: UUID,
        kc_id: UUID,
        defaults: dict[str, float] | None = None,
    ) -> MasteryRecord:
        """
        Fetch the record for a key, creating it with defaults if absent, and lock it.

        Must run inside the caller's transaction; the lock is held until commit
        or rollback.
        """
        params = defaults or default_bkt_params()
        now = self.clock.now()
        insert = _insert_for(self.db)

        stmt = (
            insert(MasteryRecord)
            .values(
                id=uuid4(),
                user_id=user_id,
                course_id=course_id,
                kc_id=kc_id,
                total_attempts=0,
                total_correct=0,
                version=0,
                last_updated=now,
                created_at=now,
                **params,
            )
            .on_conflict_do_nothing(index_elements=MASTERY_KEY)
        )

        with translate_db_errors("creating mastery record"):
            result = self.db.execute(stmt)
            if result.rowcount:
                logger.info(
                    f"Created mastery record for user {user_id}, course {course_id}, "
                    f"kc {kc_id} with p_mastery={params['p_mastery']:.3f}"
                )

            record = self.db.execute(
                select(MasteryRecord)
                .where(
                    MasteryRecord.user_id == user_id,
                    MasteryRecord.course_id == course_id,
                    MasteryRecord.kc_id == kc_id,
                )
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one()

        return record

    def apply_update(
        self,
        record: MasteryRecord,
        read_version: int,
        p_mastery: float,
        correct: bool,
    ) -> BKTState:
        """
        Persist a posterior for a record read at ``read_version``.

        Raises:
            ConcurrencyConflict: If the record changed since it was read
        """
        stmt = (
            update(MasteryRecord)
            .where(
                MasteryRecord.id == record.id,
                MasteryRecord.version == read_version,
            )
            .values(
                p_mastery=p_mastery,
                total_attempts=MasteryRecord.total_attempts + 1,
                total_correct=MasteryRecord.total_correct + (1 if correct else 0),
                version=MasteryRecord.version + 1,
                last_updated=self.clock.now(),
            )
            .execution_options(synchronize_session=False)
        )

        with translate_db_errors("updating mastery record"):
            result = self.db.execute(stmt)

        if result.rowcount != 1:
            raise ConcurrencyConflict(
                "Mastery record changed concurrently",
                details={"kc_id": str(record.kc_id), "read_version": read_version},
            )

        posterior = BKTState(
            p_mastery=p_mastery,
            p_learn=record.p_learn,
            p_slip=record.p_slip,
            p_guess=record.p_guess,
        )
        # Counters were bumped in SQL; reload on next access
        self.db.expire(record)
        return posterior


class AttemptLog:
    """Append-only log of answered questions."""

    def __init__(self, db: Session, clock: Clock):
        self.db = db
        self.clock = clock

    def append(
        self,
        *,
        user_id: UUID,
        course_id: UUID,
        question_id: UUID,
        kc_id: UUID,
        selected_option_index: int,
        is_correct: bool,
        p_mastery_before: float,
        p_mastery_after: float,
        session_id: UUID | None = None,
    ) -> Attempt:
        attempt = Attempt(
            id=uuid4(),
            user_id=user_id,
            course_id=course_id,
            question_id=question_id,
            kc_id=kc_id,
            session_id=session_id,
            selected_option_index=selected_option_index,
            is_correct=is_correct,
            p_mastery_before=p_mastery_before,
            p_mastery_after=p_mastery_after,
            created_at=self.clock.now(),
        )
        with translate_db_errors("recording attempt"):
            self.db.add(attempt)
            self.db.flush()
        return attempt

    def get(self, attempt_id: UUID) -> Attempt | None:
        with translate_db_errors("reading attempt"):
            return self.db.get(Attempt, attempt_id)

    def recently_seen(self, user_id: UUID, window: timedelta) -> set[UUID]:
        """Question ids this user attempted inside the window."""
        cutoff: datetime = self.clock.now() - window
        with translate_db_errors("reading recent attempts"):
            rows = self.db.execute(
                select(Attempt.question_id)
                .where(
                    Attempt.user_id == user_id,
                    Attempt.created_at >= cutoff,
                )
                .distinct()
            ).all()
        return {row[0] for row in rows}
