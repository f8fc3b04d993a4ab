"""Participant profile resolution for bookings."""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import NotFoundError, ValidationError
from ..models.participant import Participant
from ..schemas.booking import ParticipantInput

logger = logging.getLogger(__name__)

_PROFILE_FIELDS = (
    "full_name",
    "gender",
    "birth_date",
    "id_number",
    "phone",
    "email",
    "domicile",
    "health_history",
)


class ParticipantService:
    """Resolves booking participant entries to saved profiles of one customer."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve(self, user_id: str, entries: list[ParticipantInput]) -> list[Participant]:
        """
        Turn booking participant entries into persisted profiles.

        Referenced profiles must belong to ``user_id``. Inline profiles are
        matched by ID number, then by name plus birth date; a match is updated
        with the non-empty fields supplied, otherwise a new profile is created.
        Nothing is committed.

        Raises:
            NotFoundError: If a referenced profile does not exist for this customer
            ValidationError: If the same traveller appears twice
        """
        resolved: list[Participant] = []
        seen: set[UUID] = set()

        for entry in entries:
            if entry.participant_id is not None:
                participant = await self._get_owned(user_id, entry.participant_id)
            else:
                participant = await self._match(user_id, entry)
                if participant is None:
                    participant = Participant(user_id=user_id)
                    self.db.add(participant)
                self._apply(participant, entry)
                await self.db.flush()

            if participant.id in seen:
                raise ValidationError(
                    detail="The same participant is listed more than once",
                    errors={"participant_id": str(participant.id)}
                )
            seen.add(participant.id)
            resolved.append(participant)

        return resolved

    async def _get_owned(self, user_id: str, participant_id: UUID) -> Participant:
        stmt = select(Participant).where(
            Participant.id == participant_id,
            Participant.user_id == user_id
        )
        result = await self.db.execute(stmt)
        participant = result.scalar_one_or_none()
        if not participant:
            raise NotFoundError(resource_type="participant", resource_id=str(participant_id))
        return participant

    async def _match(self, user_id: str, entry: ParticipantInput) -> Participant | None:
        if entry.id_number:
            stmt = select(Participant).where(
                Participant.user_id == user_id,
                Participant.id_number == entry.id_number
            )
            match = (await self.db.execute(stmt)).scalars().first()
            if match:
                return match

        if entry.full_name and entry.birth_date:
            stmt = select(Participant).where(
                Participant.user_id == user_id,
                Participant.full_name == entry.full_name,
                Participant.birth_date == entry.birth_date
            )
            return (await self.db.execute(stmt)).scalars().first()

        return None

    @staticmethod
    def _apply(participant: Participant, entry: ParticipantInput) -> None:
        for name in _PROFILE_FIELDS:
            value = getattr(entry, name)
            if value not in (None, ""):
                setattr(participant, name, value)
