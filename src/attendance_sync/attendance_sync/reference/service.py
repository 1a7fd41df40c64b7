from __future__ import annotations

import logging
from typing import Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from ..core.exceptions import ReferenceDataError
from .model import Level, Office, Student
from .repository import ReferenceRepository

logger = logging.getLogger(__name__)


class ReferenceDataService:
    """Roster/reference lookups used by the form screen and the record store.

    Failures are reported as ReferenceDataError; nothing here retries.
    """

    def __init__(self, reference: ReferenceRepository):
        self._reference = reference

    def get_local_offices(self) -> Sequence[Office]:
        try:
            return self._reference.get_local_offices()
        except SQLAlchemyError as exc:
            logger.error("Failed to load offices: %s", exc)
            raise ReferenceDataError("Failed to load offices") from exc

    def get_local_levels(self) -> Sequence[Level]:
        try:
            return self._reference.get_local_levels()
        except SQLAlchemyError as exc:
            logger.error("Failed to load levels: %s", exc)
            raise ReferenceDataError("Failed to load levels") from exc

    def get_students_by_office_and_level(self, office_uuid: str, level_uuid: str, *, conn=None) -> Sequence[Student]:
        try:
            return self._reference.get_students_by_office_and_level(office_uuid, level_uuid, conn=conn)
        except SQLAlchemyError as exc:
            logger.error("Failed to load roster for office=%s level=%s: %s", office_uuid, level_uuid, exc)
            raise ReferenceDataError("Failed to load students") from exc

    def get_office(self, office_uuid: str, *, conn=None) -> Optional[Office]:
        try:
            return self._reference.get_office(office_uuid, conn=conn)
        except SQLAlchemyError as exc:
            raise ReferenceDataError("Failed to load office") from exc

    def get_level(self, level_uuid: str, *, conn=None) -> Optional[Level]:
        try:
            return self._reference.get_level(level_uuid, conn=conn)
        except SQLAlchemyError as exc:
            raise ReferenceDataError("Failed to load level") from exc
