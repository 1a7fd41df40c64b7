from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError

from src.attendance_sync.attendance_sync.core.exceptions import ReferenceDataError
from src.attendance_sync.attendance_sync.reference.service import ReferenceDataService


class BrokenReferenceRepo:
    def get_local_offices(self):
        raise OperationalError("SELECT", {}, Exception("no such table: offices"))

    def get_students_by_office_and_level(self, office_uuid, level_uuid, *, conn=None):
        raise OperationalError("SELECT", {}, Exception("no such table: students"))


def test_lookups_read_local_reference_data(container):
    service = container.reference_service

    assert [o.name for o in service.get_local_offices()] == ["Annex", "Main Office"]
    assert [lv.uuid for lv in service.get_local_levels()] == ["level-2", "level-1"]
    roster = service.get_students_by_office_and_level("office-1", "level-1")
    assert [s.name for s in roster] == ["An", "Binh", "Cuong"]
    assert roster[0].office_name == "Main Office"
    assert service.get_office("missing") is None


def test_lookup_failures_are_reported():
    service = ReferenceDataService(BrokenReferenceRepo())

    with pytest.raises(ReferenceDataError):
        service.get_local_offices()
    with pytest.raises(ReferenceDataError):
        service.get_students_by_office_and_level("o", "l")
