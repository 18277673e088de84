"""Unit tests for the SQLite vote store."""

import threading

import pytest

from voteop.canonical import content_id
from voteop.errors import DuplicateRecord, InternalError, NotFound, StoreUnavailable
from voteop.store import MAX_LIMIT, VoteStore, clamp_pagination

SIG = "0x" + "11" * 64 + "1b"
SIGNER = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"


def _vote(n: int):
    vote_id, raw = content_id({"proposal_id": f"prop_{n}", "choice": "yes"})
    return vote_id, raw.decode("utf-8")


def test_initialize_is_idempotent(store):
    store.initialize()
    assert store.count() == 0


def test_insert_and_get(store):
    vote_id, payload = _vote(1)
    store.insert(vote_id, payload, SIG, SIGNER)

    record = store.get(vote_id)
    assert record.id == vote_id
    assert record.payload == payload
    assert record.signature == SIG
    assert record.signer == SIGNER
    assert record.created_at.endswith("Z")


def test_insert_without_signer(store):
    vote_id, payload = _vote(1)
    store.insert(vote_id, payload, SIG)
    assert store.get(vote_id).signer is None


def test_duplicate_insert_is_rejected_and_first_write_wins(store):
    vote_id, payload = _vote(1)
    store.insert(vote_id, payload, SIG, SIGNER)

    with pytest.raises(DuplicateRecord):
        store.insert(vote_id, payload, "0x" + "22" * 64 + "1c", None)

    assert store.count() == 1
    assert store.get(vote_id).signature == SIG


def test_constraint_violation_is_not_a_duplicate(store):
    with pytest.raises(InternalError):
        store.insert("0x1234", "{}", SIG)
    assert store.count() == 0


def test_get_missing_raises_not_found(store):
    with pytest.raises(NotFound):
        store.get(_vote(1)[0])


def test_list_is_newest_first(store):
    ids = []
    for n in range(5):
        vote_id, payload = _vote(n)
        store.insert(vote_id, payload, SIG)
        ids.append(vote_id)

    listed = [v.id for v in store.list(limit=10, offset=0)]
    assert listed == list(reversed(ids))

    page = [v.id for v in store.list(limit=2, offset=1)]
    assert page == list(reversed(ids))[1:3]


def test_list_is_restartable(store):
    for n in range(3):
        store.insert(*_vote(n), SIG)
    assert store.list(limit=2, offset=0) == store.list(limit=2, offset=0)


def test_list_clamps_out_of_range_arguments(store):
    for n in range(3):
        store.insert(*_vote(n), SIG)
    assert len(store.list(limit=500, offset=-5)) == 3
    assert len(store.list(limit=0, offset=0)) == 1


@pytest.mark.parametrize(
    "limit, offset, expected",
    [
        (None, None, (10, 0)),
        (500, -5, (MAX_LIMIT, 0)),
        (0, 0, (1, 0)),
        (-3, 7, (1, 7)),
        ("25", "4", (25, 4)),
        ("abc", "xyz", (10, 0)),
        (100, 0, (100, 0)),
    ],
)
def test_clamp_pagination(limit, offset, expected):
    assert clamp_pagination(limit, offset) == expected


def test_concurrent_inserts_of_same_id_have_one_winner(store):
    vote_id, payload = _vote(42)
    outcomes = []
    lock = threading.Lock()
    barrier = threading.Barrier(8)

    def worker():
        barrier.wait()
        try:
            store.insert(vote_id, payload, SIG)
            result = "ok"
        except DuplicateRecord:
            result = "duplicate"
        finally:
            store.close()
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count("duplicate") == 7
    assert store.count() == 1


def test_concurrent_inserts_of_different_ids_all_succeed(store):
    errors = []

    def worker(n):
        try:
            store.insert(*_vote(n), SIG)
        except Exception as e:  # pragma: no cover - reported below
            errors.append(e)
        finally:
            store.close()

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert store.count() == 10


def test_unopenable_database_is_store_unavailable(tmp_path):
    broken = VoteStore(str(tmp_path), timeout=0.1)
    with pytest.raises(StoreUnavailable):
        broken.ping()
