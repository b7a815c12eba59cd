"""Doctor rating aggregate maintenance."""

from uuid import UUID

import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from medislot.core.exceptions import NotFoundException
from medislot.models.doctors import doctors
from medislot.schemas.doctors import DoctorRating

logger = structlog.get_logger()


class RatingService:
    """Service for the running (average, count) rating of a doctor."""

    async def apply_rating(self, db: AsyncSession, doctor_id: UUID, score: int) -> DoctorRating:
        """
        Fold one score into the doctor's aggregate.

        The new average is computed from the stored values inside a single
        UPDATE, so concurrent ratings of the same doctor serialize on the row
        instead of losing updates. Not idempotent, and does not commit: the
        caller owns the transaction, the rate-once guard and the cache
        invalidation that must follow the commit.

        Args:
            db: Database session
            doctor_id: Doctor profile ID
            score: Score between 1 and 5

        Returns:
            Updated aggregate

        Raises:
            NotFoundException: If the doctor does not exist
        """
        stmt = (
            update(doctors)
            .where(doctors.c.id == doctor_id)
            .values(
                rating_average=(doctors.c.rating_average * doctors.c.rating_count + score)
                / (doctors.c.rating_count + 1),
                rating_count=doctors.c.rating_count + 1,
            )
            .returning(doctors.c.rating_average, doctors.c.rating_count)
        )
        result = await db.execute(stmt)
        row = result.fetchone()

        if row is None:
            raise NotFoundException("Doctor not found")

        logger.info(
            "doctor_rating_updated",
            doctor_id=str(doctor_id),
            score=score,
            average=row.rating_average,
            count=row.rating_count,
        )
        return DoctorRating(average=row.rating_average, count=row.rating_count)
