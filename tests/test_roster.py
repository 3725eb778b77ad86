import json

import pytest

from errors import StorageError
from roster import Roster
from store import LocalBookingStore

from conftest import make_draft


def test_empty_roster(tmp_path):
    assert Roster(tmp_path).names() == []


def test_add_trims_and_dedupes(tmp_path):
    roster = Roster(tmp_path)
    roster.add("Alex")
    roster.add("  Jamie ")
    roster.add("Alex")
    roster.add("   ")
    assert roster.names() == ["Alex", "Jamie"]
    assert json.loads((tmp_path / "w4h_people_v1.json").read_text()) == ["Alex", "Jamie"]


def test_names_are_case_sensitive(tmp_path):
    roster = Roster(tmp_path)
    roster.add("alex")
    roster.add("Alex")
    assert roster.names() == ["alex", "Alex"]


@pytest.mark.asyncio
async def test_remove_leaves_bookings_alone(tmp_path):
    roster = Roster(tmp_path)
    store = LocalBookingStore(tmp_path)
    roster.add("Alex")
    await store.create(make_draft("Alex"))

    assert roster.remove("Alex") == []
    assert roster.remove("Nobody") == []
    assert [b.title for b in await store.list_for_week("2025-W10")] == ["Alex"]


def test_wrong_shape_is_a_storage_error(tmp_path):
    (tmp_path / "w4h_people_v1.json").write_text('{"Alex": 1}')
    with pytest.raises(StorageError):
        Roster(tmp_path).names()
