import asyncio
import threading
from datetime import datetime, timedelta

import pytest

from todo_api.errors import StoreError
from todo_api.reconciler import DueDateReconciler, seconds_until_next_run
from todo_api.repositories import InMemoryRepository
from todo_api.service import TodoService

NOW = datetime(2030, 6, 15, 12, 0, 0)


def seed(repo: InMemoryRepository, due, completed=False, priority=3):
    return repo.insert(
        title="t",
        description="d",
        due_date=due,
        priority=priority,
        completed=completed,
    )


def make_reconciler(repo, now=NOW):
    return DueDateReconciler(TodoService(repo), clock=lambda: now)


def snapshot(repo):
    return {t["id"]: (t["completed"], t["updated_at"]) for t in repo.find_all()}


def test_overdue_task_is_completed(repo):
    overdue = seed(repo, NOW - timedelta(days=1))
    upcoming = seed(repo, NOW + timedelta(days=1))

    assert make_reconciler(repo).reconcile() == 1

    assert repo.find_by_id(overdue["id"])["completed"] is True
    assert repo.find_by_id(overdue["id"])["updated_at"] > overdue["updated_at"]
    assert repo.find_by_id(upcoming["id"]) == upcoming


def test_due_exactly_now_is_completed(repo):
    todo = seed(repo, NOW)
    make_reconciler(repo).reconcile()
    assert repo.find_by_id(todo["id"])["completed"] is True


def test_null_due_date_is_never_touched(repo):
    open_ = seed(repo, None)
    done = seed(repo, None, completed=True)

    assert make_reconciler(repo).reconcile() == 0

    assert repo.find_by_id(open_["id"]) == open_
    assert repo.find_by_id(done["id"]) == done


def test_already_completed_task_is_not_resaved(repo):
    done = seed(repo, NOW - timedelta(days=3), completed=True)
    make_reconciler(repo).reconcile()
    assert repo.find_by_id(done["id"])["updated_at"] == done["updated_at"]


def test_second_pass_is_a_no_op(repo):
    seed(repo, NOW - timedelta(hours=2))
    seed(repo, NOW + timedelta(hours=2))
    seed(repo, None)
    reconciler = make_reconciler(repo)

    assert reconciler.reconcile() == 1
    after_first = snapshot(repo)
    assert reconciler.reconcile() == 0
    assert snapshot(repo) == after_first


def test_other_fields_are_preserved(repo):
    todo = seed(repo, NOW - timedelta(minutes=1), priority=5)
    make_reconciler(repo).reconcile()
    stored = repo.find_by_id(todo["id"])
    for key in ("title", "description", "due_date", "priority", "created_at"):
        assert stored[key] == todo[key]


def test_now_is_read_per_task(repo):
    first = seed(repo, NOW + timedelta(seconds=1))
    second = seed(repo, NOW + timedelta(seconds=1))
    ticks = iter([NOW, NOW + timedelta(seconds=5)])

    reconciler = DueDateReconciler(TodoService(repo), clock=lambda: next(ticks))
    assert reconciler.reconcile() == 1

    assert repo.find_by_id(first["id"])["completed"] is False
    assert repo.find_by_id(second["id"])["completed"] is True


class FlakyRepository(InMemoryRepository):
    """Fails to save one specific id; everything else behaves normally."""

    def __init__(self, failing_id: int) -> None:
        super().__init__()
        self.failing_id = failing_id

    def save(self, entity):
        if entity["id"] == self.failing_id:
            raise StoreError("disk full")
        return super().save(entity)


def test_store_failure_does_not_abort_the_pass(caplog):
    repo = FlakyRepository(failing_id=2)
    for _ in range(3):
        seed(repo, NOW - timedelta(days=1))

    assert make_reconciler(repo).reconcile() == 2

    assert repo.find_by_id(1)["completed"] is True
    assert repo.find_by_id(2)["completed"] is False
    assert repo.find_by_id(3)["completed"] is True
    assert "failed to complete task 2" in caplog.text


class BrokenRepository(InMemoryRepository):
    def find_all(self, todo_filter=None, sort=None):
        raise StoreError("connection refused")


def test_fetch_failure_skips_the_run(caplog):
    assert make_reconciler(BrokenRepository()).reconcile() == 0
    assert "could not fetch tasks" in caplog.text


@pytest.mark.parametrize(
    "now, expected",
    [
        (datetime(2030, 1, 1, 10, 0, 0), 3600.0),
        (datetime(2030, 1, 1, 10, 59, 30), 30.0),
        (datetime(2030, 1, 1, 10, 15, 0), 2700.0),
        (datetime(2030, 1, 1, 23, 30, 0), 1800.0),
    ],
)
def test_seconds_until_next_run_aligns_to_top_of_hour(now, expected):
    assert seconds_until_next_run(now) == expected


def test_seconds_until_next_run_custom_interval():
    assert seconds_until_next_run(datetime(2030, 1, 1, 0, 7, 0), 600) == 180.0


def test_interval_must_be_positive(service):
    with pytest.raises(ValueError):
        DueDateReconciler(service, interval_seconds=0)


@pytest.mark.asyncio
async def test_start_and_stop_lifecycle(service):
    reconciler = DueDateReconciler(service, interval_seconds=3600)
    reconciler.start()
    assert reconciler.running
    await reconciler.stop()
    assert not reconciler.running
    # stop() twice is harmless
    await reconciler.stop()


@pytest.mark.asyncio
async def test_run_forever_reconciles_on_each_tick(repo, monkeypatch):
    seed(repo, datetime.now() - timedelta(days=1))
    reconciler = DueDateReconciler(TodoService(repo), interval_seconds=3600)
    monkeypatch.setattr("todo_api.reconciler.seconds_until_next_run", lambda now, interval: 0.01)

    runner = asyncio.create_task(reconciler.run_forever())
    await asyncio.sleep(0.2)
    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner

    assert all(t["completed"] for t in repo.find_all())


@pytest.mark.asyncio
async def test_stop_waits_for_in_flight_pass(repo, monkeypatch):
    todo = seed(repo, datetime.now() - timedelta(days=1))
    entered = threading.Event()
    release = threading.Event()

    class SlowService(TodoService):
        def list_all(self):
            entered.set()
            release.wait(timeout=5)
            return super().list_all()

    monkeypatch.setattr("todo_api.reconciler.seconds_until_next_run", lambda now, interval: 0.01)
    reconciler = DueDateReconciler(SlowService(repo))
    reconciler.start()
    while not entered.is_set():
        await asyncio.sleep(0.01)

    stopper = asyncio.create_task(reconciler.stop())
    await asyncio.sleep(0.05)
    assert not stopper.done()

    release.set()
    await asyncio.wait_for(stopper, timeout=5)
    assert repo.find_by_id(todo["id"])["completed"] is True
    assert not reconciler.running
