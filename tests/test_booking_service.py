"""
Tests for the BookingService orchestration layer.
"""

import json
import threading
from typing import Dict, Iterable, List

import pendulum
import pytest

from meetingbook.adapters.json_store import JsonFileStore
from meetingbook.adapters.memory_store import InMemoryStore
from meetingbook.domain.exceptions import (
    ConflictError,
    FullyBookedError,
    LengthNotDefinedError,
    MultiplicityError,
    OutsideTimeTableError,
    SlotTakenError,
    ValidationError,
)
from meetingbook.domain.interval import make_interval
from meetingbook.services import BookingService, Caller, KeyedLocks, RequestContext

TZ = "UTC"
MONDAY = "2024-11-25"


def _ts(text: str) -> int:
    return pendulum.parse(text, tz=TZ).int_timestamp


def _build_store(
    timetable: Dict[str, List[str]] | None = None,
    lengths: Iterable[int] = (30, 60),
    professional: str = "pro",
) -> InMemoryStore:
    return InMemoryStore({
        "timeTables": [{"createdBy": professional, "timeTable": timetable or {"monday": ["08:00-17:00"]}}],
        "intervals": [{"professional": professional, "length": length} for length in lengths],
    })


def _service(store: InMemoryStore, caller: str = "client", professional: bool = False) -> BookingService:
    context = RequestContext(caller=Caller(id=caller, professional=professional), store=store)
    return BookingService(context, locks=KeyedLocks(), tz=TZ)


def test_suggest_returns_exact_gap_at_anchor():
    """Free gap 09:30-10:00, asking for 09:30 with 30 minutes fits exactly."""
    store = _build_store()
    _service(store).insert("pro", _ts(f"{MONDAY} 08:00"), 60)
    _service(store).insert("pro", _ts(f"{MONDAY} 09:00"), 30)
    _service(store).insert("pro", _ts(f"{MONDAY} 10:00"), 60)

    suggestion = _service(store, caller="other").suggest_closest("pro", _ts(f"{MONDAY} 09:30"), 30)

    assert suggestion == make_interval(570, 600)


def test_suggest_moves_to_the_closest_free_segment():
    store = _build_store()
    _service(store).insert("pro", _ts(f"{MONDAY} 09:00"), 60)

    suggestion = _service(store).suggest_closest("pro", _ts(f"{MONDAY} 09:30"), 30)

    assert suggestion == make_interval(600, 630)


def test_suggest_fully_booked_day():
    store = _build_store(timetable={"monday": ["08:00-09:00"]})
    _service(store).insert("pro", _ts(f"{MONDAY} 08:00"), 60)

    with pytest.raises(FullyBookedError, match="all day is taken"):
        _service(store).suggest_closest("pro", _ts(f"{MONDAY} 08:00"), 30)


def test_suggest_on_day_off_is_fully_booked():
    store = _build_store()

    with pytest.raises(ConflictError):
        _service(store).suggest_closest("pro", _ts("2024-11-26 09:00"), 30)


def test_suggest_only_considers_bookings_of_that_day():
    store = _build_store(timetable={"monday": ["08:00-09:00"]})
    _service(store).insert("pro", _ts("2024-12-02 08:00"), 60)  # next Monday

    suggestion = _service(store).suggest_closest("pro", _ts(f"{MONDAY} 08:00"), 60)

    assert suggestion == make_interval(480, 540)


def test_undefined_length_is_rejected():
    store = _build_store(lengths=(30,))

    with pytest.raises(LengthNotDefinedError, match="Interval 45 is not defined"):
        _service(store).insert("pro", _ts(f"{MONDAY} 09:00"), 45)
    with pytest.raises(LengthNotDefinedError):
        _service(store).suggest_closest("pro", _ts(f"{MONDAY} 09:00"), 45)


def test_duplicate_length_definitions_are_rejected():
    store = _build_store(lengths=(30, 30))

    with pytest.raises(LengthNotDefinedError):
        _service(store).insert("pro", _ts(f"{MONDAY} 09:00"), 30)


def test_missing_timetable_is_a_multiplicity_error():
    store = InMemoryStore({"intervals": [{"professional": "pro", "length": 30}]})

    with pytest.raises(MultiplicityError):
        _service(store).suggest_closest("pro", _ts(f"{MONDAY} 09:00"), 30)


def test_two_timetables_are_a_multiplicity_error():
    store = _build_store()
    store.new_filter("timeTables").insert({"createdBy": "pro", "timeTable": {"monday": ["08:00-12:00"]}})

    with pytest.raises(MultiplicityError):
        _service(store).insert("pro", _ts(f"{MONDAY} 09:00"), 30)


def test_insert_persists_booking():
    store = _build_store()

    booking = _service(store, caller="alice").insert("pro", _ts(f"{MONDAY} 09:00"), 30)

    documents = store.documents("entries")
    assert len(documents) == 1
    document = documents[0]
    assert document["createdBy"] == "alice"
    assert document["professional"] == "pro"
    assert document["from"] == _ts(f"{MONDAY} 09:00")
    assert document["to"] == _ts(f"{MONDAY} 09:30")
    assert document["length"] == 30
    assert document["day"] == "2024.11.25"
    assert booking.end == booking.start + 30 * 60


@pytest.mark.parametrize("start", [f"{MONDAY} 07:45", f"{MONDAY} 16:45", "2024-11-26 09:00"])
def test_insert_outside_timetable_is_rejected(start):
    store = _build_store()

    with pytest.raises(OutsideTimeTableError, match="does not fit"):
        _service(store).insert("pro", _ts(start), 30)
    assert store.documents("entries") == []


def test_insert_across_lunch_break_is_rejected():
    store = _build_store(timetable={"monday": ["08:00-12:00", "13:00-17:00"]})

    with pytest.raises(OutsideTimeTableError):
        _service(store).insert("pro", _ts(f"{MONDAY} 11:30"), 60)


def test_insert_crossing_midnight_is_rejected():
    store = _build_store(timetable={"monday": ["20:00-24:00"], "tuesday": ["00:00-04:00"]})

    with pytest.raises(ValidationError):
        _service(store).insert("pro", _ts(f"{MONDAY} 23:30"), 60)


def test_insert_until_midnight_is_accepted():
    store = _build_store(timetable={"monday": ["20:00-24:00"]})

    booking = _service(store).insert("pro", _ts(f"{MONDAY} 23:30"), 30)

    assert booking.day == "2024.11.25"


@pytest.mark.parametrize("start,length", [
    (f"{MONDAY} 10:30", 60),  # starts inside the existing booking
    (f"{MONDAY} 09:30", 60),  # ends inside the existing booking
    # The last three put no endpoint of the existing booking strictly inside
    # the new one. They are rejected on purpose: any overlap is a conflict,
    # only touching bookings are allowed.
    (f"{MONDAY} 10:00", 60),  # same time
    (f"{MONDAY} 10:15", 30),  # contained in the existing booking
    (f"{MONDAY} 10:30", 30),  # shares the end of the existing booking
])
def test_overlapping_insert_is_rejected(start, length):
    store = _build_store(lengths=(30, 60, 120))
    _service(store, caller="alice").insert("pro", _ts(f"{MONDAY} 10:00"), 60)

    with pytest.raises(SlotTakenError, match="already taken"):
        _service(store, caller="bob").insert("pro", _ts(start), length)
    assert len(store.documents("entries")) == 1


def test_covering_insert_is_rejected():
    store = _build_store(lengths=(30, 120))
    _service(store).insert("pro", _ts(f"{MONDAY} 10:00"), 30)

    with pytest.raises(SlotTakenError):
        _service(store).insert("pro", _ts(f"{MONDAY} 09:30"), 120)


def test_back_to_back_bookings_are_accepted():
    store = _build_store()
    _service(store).insert("pro", _ts(f"{MONDAY} 10:00"), 60)

    _service(store).insert("pro", _ts(f"{MONDAY} 11:00"), 60)
    _service(store).insert("pro", _ts(f"{MONDAY} 09:00"), 60)

    assert len(store.documents("entries")) == 3


def test_other_professionals_bookings_do_not_conflict():
    store = _build_store()
    store.new_filter("timeTables").insert({"createdBy": "pro2", "timeTable": {"monday": ["08:00-17:00"]}})
    store.new_filter("intervals").insert({"professional": "pro2", "length": 60})

    _service(store).insert("pro2", _ts(f"{MONDAY} 10:00"), 60)
    _service(store).insert("pro", _ts(f"{MONDAY} 10:00"), 60)

    assert len(store.documents("entries")) == 2


def test_suggest_ignores_other_professionals_bookings():
    store = _build_store(timetable={"monday": ["08:00-09:00"]})
    store.new_filter("timeTables").insert({"createdBy": "pro2", "timeTable": {"monday": ["08:00-09:00"]}})
    store.new_filter("intervals").insert({"professional": "pro2", "length": 60})
    _service(store).insert("pro2", _ts(f"{MONDAY} 08:00"), 60)

    suggestion = _service(store).suggest_closest("pro", _ts(f"{MONDAY} 08:00"), 60)

    assert suggestion == make_interval(480, 540)


def test_visibility_for_professional_and_client():
    store = _build_store()
    store.new_filter("timeTables").insert({"createdBy": "pro2", "timeTable": {"monday": ["08:00-17:00"]}})
    store.new_filter("intervals").insert({"professional": "pro2", "length": 30})

    _service(store, caller="alice").insert("pro", _ts(f"{MONDAY} 09:00"), 30)
    _service(store, caller="bob").insert("pro", _ts(f"{MONDAY} 10:00"), 30)
    # "pro" books "pro2" while acting as a client
    _service(store, caller="pro").insert("pro2", _ts(f"{MONDAY} 11:00"), 30)

    as_professional = _service(store, caller="pro", professional=True).visible_bookings()
    as_alice = _service(store, caller="alice").visible_bookings()

    assert [b.created_by for b in as_professional] == ["alice", "bob"]
    assert all(b.professional == "pro" for b in as_professional)
    assert [b.created_by for b in as_alice] == ["alice"]


def test_visibility_filter_adds_role_query():
    store = _build_store()
    flt = store.new_filter("entries")

    _service(store, caller="pro", professional=True).visibility_filter(flt)
    assert flt.queries == [{"professional": "pro"}]

    flt = store.new_filter("entries")
    _service(store, caller="alice").visibility_filter(flt)
    assert flt.queries == [{"createdBy": "alice"}]


def test_delete_is_a_no_op():
    store = _build_store()
    _service(store).insert("pro", _ts(f"{MONDAY} 09:00"), 30)

    assert _service(store).delete(store.new_filter("entries")) is None
    assert len(store.documents("entries")) == 1


def test_collection_names_come_from_options():
    store = InMemoryStore({
        "hours": [{"createdBy": "pro", "timeTable": {"monday": ["08:00-17:00"]}}],
        "allowedLengths": [{"professional": "pro", "length": 30}],
    })
    options = {"nouns": {"meetings": {"options": {"timeTableColl": "hours", "intervalColl": "allowedLengths"}}}}
    context = RequestContext(caller=Caller(id="alice"), store=store, options=options, resource="meetings")

    BookingService(context, tz=TZ).insert("pro", _ts(f"{MONDAY} 09:00"), 30)

    assert len(store.documents("meetings")) == 1


def test_concurrent_inserts_for_same_slot_book_once():
    store = _build_store()
    locks = KeyedLocks()
    start = _ts(f"{MONDAY} 09:00")
    barrier = threading.Barrier(8)
    outcomes: List[str] = []

    def attempt(index: int) -> None:
        context = RequestContext(caller=Caller(id=f"client{index}"), store=store)
        service = BookingService(context, locks=locks, tz=TZ)
        barrier.wait()
        try:
            service.insert("pro", start, 30)
            outcomes.append("booked")
        except SlotTakenError:
            outcomes.append("taken")

    threads = [threading.Thread(target=attempt, args=(i,)) for i in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count("booked") == 1
    assert outcomes.count("taken") == 7
    assert len(store.documents("entries")) == 1


def test_suggest_on_dst_change_day_keeps_requested_length():
    # 2024-03-31 02:00 does not exist in Berlin: 01:30 plus one hour is 03:30
    tz = "Europe/Berlin"
    store = InMemoryStore({
        "timeTables": [{"createdBy": "pro", "timeTable": {"sunday": ["01:30-02:30"]}}],
        "intervals": [{"professional": "pro", "length": 60}],
    })
    context = RequestContext(caller=Caller(id="client"), store=store)
    start = pendulum.datetime(2024, 3, 31, 1, 30, tz=tz).int_timestamp

    suggestion = BookingService(context, locks=KeyedLocks(), tz=tz).suggest_closest("pro", start, 60)

    assert suggestion == make_interval(90, 150)


def _seed_file(path) -> None:
    path.write_text(json.dumps({
        "timeTables": [{"createdBy": "pro", "timeTable": {"monday": ["08:00-17:00"]}}],
        "intervals": [{"professional": "pro", "length": 30}],
    }), encoding="utf-8")


def _file_service(path, caller: str) -> BookingService:
    # Separate store and lock registry per caller, as in separate processes
    context = RequestContext(caller=Caller(id=caller), store=JsonFileStore(path))
    return BookingService(context, locks=KeyedLocks(), tz=TZ)


def test_file_store_instances_do_not_double_book(tmp_path):
    path = tmp_path / "store.json"
    _seed_file(path)

    alice = _file_service(path, "alice")
    bob = _file_service(path, "bob")

    alice.insert("pro", _ts(f"{MONDAY} 09:00"), 30)
    with pytest.raises(SlotTakenError):
        bob.insert("pro", _ts(f"{MONDAY} 09:00"), 30)

    assert [d["createdBy"] for d in JsonFileStore(path).documents("entries")] == ["alice"]


def test_concurrent_file_store_bookings_book_once(tmp_path):
    path = tmp_path / "store.json"
    _seed_file(path)
    services = [_file_service(path, f"client{i}") for i in range(4)]
    barrier = threading.Barrier(len(services))
    outcomes: List[str] = []

    def attempt(service: BookingService) -> None:
        barrier.wait()
        try:
            service.insert("pro", _ts(f"{MONDAY} 09:00"), 30)
            outcomes.append("booked")
        except SlotTakenError:
            outcomes.append("taken")

    threads = [threading.Thread(target=attempt, args=(service,)) for service in services]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count("booked") == 1
    assert len(JsonFileStore(path).documents("entries")) == 1
