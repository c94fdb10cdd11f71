# tests/test_task_scheduler.py

from __future__ import annotations

import asyncio
import sqlite3
from datetime import datetime, timedelta

import pytest

from reminder_bot.tasks.task_models import NewTask, Task
from reminder_bot.tasks.task_scheduler import TaskScheduler
from reminder_bot.tasks.task_service import TaskService
from reminder_bot.tasks.task_store import TaskStore

from .fakes import FakeDispatcher, FakeTaskRepo, FixedClock

T = datetime(2030, 5, 17, 10, 0)


def _task(task_id: int, due_at: datetime, destination: str = "!room:a", body: str | None = None) -> Task:
    return Task(id=task_id, destination=destination, due_at=due_at, body=body or f"task {task_id}")


@pytest.mark.asyncio
async def test_scan_dispatches_exactly_the_due_tasks() -> None:
    repo = FakeTaskRepo(
        [
            _task(1, T - timedelta(minutes=1)),
            _task(2, T),
            _task(3, T + timedelta(minutes=1)),
        ]
    )
    dispatcher = FakeDispatcher()
    scheduler = TaskScheduler(repo, dispatcher)

    # 10:00:45 truncates to 10:00
    report = await scheduler.scan_once(T + timedelta(seconds=45))

    assert report.cutoff == T
    assert report.delivered == [1, 2]
    assert [m.text for m in dispatcher.sent] == ["task 1", "task 2"]
    assert set(repo.tasks) == {3}


@pytest.mark.asyncio
async def test_scan_with_nothing_due_is_noop() -> None:
    repo = FakeTaskRepo([_task(1, T + timedelta(hours=1))])
    dispatcher = FakeDispatcher()

    report = await TaskScheduler(repo, dispatcher).scan_once(T)

    assert report.due == 0
    assert dispatcher.sent == []
    assert repo.deleted == []


@pytest.mark.asyncio
async def test_failed_dispatch_keeps_task_for_next_scan() -> None:
    repo = FakeTaskRepo([_task(1, T, destination="!blocked:a")])
    dispatcher = FakeDispatcher(failing={"!blocked:a"})
    scheduler = TaskScheduler(repo, dispatcher)

    first = await scheduler.scan_once(T)
    assert first.failed == [1]
    assert 1 in repo.tasks
    assert [t.id for t in repo.find_due(T + timedelta(seconds=30))] == [1]

    # destination recovers: the next cycle delivers it
    dispatcher.failing.clear()
    second = await scheduler.scan_once(T + timedelta(seconds=30))
    assert second.delivered == [1]
    assert repo.tasks == {}


@pytest.mark.asyncio
async def test_one_failure_does_not_block_the_batch() -> None:
    repo = FakeTaskRepo(
        [
            _task(1, T, destination="ok-1"),
            _task(2, T, destination="broken"),
            _task(3, T, destination="ok-2"),
            _task(4, T, destination="raises"),
            _task(5, T, destination="ok-3"),
        ]
    )
    dispatcher = FakeDispatcher(failing={"broken"}, raising={"raises"})

    report = await TaskScheduler(repo, dispatcher).scan_once(T)

    assert report.delivered == [1, 3, 5]
    assert report.failed == [2, 4]
    assert set(repo.tasks) == {2, 4}


@pytest.mark.asyncio
async def test_delete_failure_is_reported_and_batch_continues() -> None:
    repo = FakeTaskRepo([_task(1, T), _task(2, T)])
    repo.fail_delete_ids = {1}
    dispatcher = FakeDispatcher()

    report = await TaskScheduler(repo, dispatcher).scan_once(T)

    assert report.delete_failed == [1]
    assert report.delivered == [2]
    assert len(dispatcher.sent) == 2


@pytest.mark.asyncio
async def test_query_failure_aborts_cycle_only() -> None:
    repo = FakeTaskRepo([_task(1, T)])
    repo.fail_find = True
    dispatcher = FakeDispatcher()
    scheduler = TaskScheduler(repo, dispatcher)

    report = await scheduler.scan_once(T)
    assert report.query_failed
    assert dispatcher.sent == []

    repo.fail_find = False
    assert (await scheduler.scan_once(T)).delivered == [1]


@pytest.mark.asyncio
async def test_hung_dispatch_times_out_and_is_retried() -> None:
    repo = FakeTaskRepo([_task(1, T, destination="slow"), _task(2, T, destination="fast")])
    dispatcher = FakeDispatcher(hanging={"slow"})
    scheduler = TaskScheduler(repo, dispatcher, dispatch_timeout_seconds=0.05)

    report = await scheduler.scan_once(T)

    assert report.failed == [1]
    assert report.delivered == [2]
    assert 1 in repo.tasks


@pytest.mark.asyncio
async def test_batch_limit_leaves_rest_for_next_cycle() -> None:
    repo = FakeTaskRepo([_task(i, T) for i in range(1, 6)])
    scheduler = TaskScheduler(repo, FakeDispatcher(), batch_limit=2)

    assert (await scheduler.scan_once(T)).delivered == [1, 2]
    assert (await scheduler.scan_once(T)).delivered == [3, 4]


@pytest.mark.asyncio
async def test_concurrent_scans_do_not_double_send() -> None:
    repo = FakeTaskRepo([_task(1, T), _task(2, T)])
    dispatcher = FakeDispatcher()
    scheduler = TaskScheduler(repo, dispatcher)

    await asyncio.gather(scheduler.scan_once(T), scheduler.scan_once(T))

    assert sorted(m.text for m in dispatcher.sent) == ["task 1", "task 2"]


@pytest.mark.asyncio
async def test_start_stop_runs_loop() -> None:
    clock = FixedClock(T + timedelta(seconds=5))
    repo = FakeTaskRepo([_task(1, T)])
    dispatcher = FakeDispatcher()
    scheduler = TaskScheduler(repo, dispatcher, interval_seconds=0.01, clock=clock)

    scheduler.start()
    assert scheduler.running
    for _ in range(100):
        if dispatcher.sent:
            break
        await asyncio.sleep(0.01)
    await scheduler.stop()

    assert not scheduler.running
    assert [m.text for m in dispatcher.sent] == ["task 1"]
    assert repo.tasks == {}


@pytest.mark.asyncio
async def test_end_to_end_create_then_deliver(store: TaskStore) -> None:
    clock = FixedClock(datetime(2030, 5, 17, 10, 0, 20))
    service = TaskService(store, clock=clock)
    dispatcher = FakeDispatcher()
    scheduler = TaskScheduler(store, dispatcher, clock=clock)

    result = service.create_task("!chat:42", "17.05.2030 10:02 buy milk")
    assert result.ok

    # not due yet
    assert (await scheduler.scan_once()).due == 0

    clock.advance(minutes=3)
    report = await scheduler.scan_once()

    assert report.delivered == [result.task.id]
    assert [(m.destination, m.text) for m in dispatcher.sent] == [("!chat:42", "buy milk")]
    assert store.find_due(clock()) == []

    # a further scan does not send it again
    await scheduler.scan_once()
    assert len(dispatcher.sent) == 1


@pytest.mark.asyncio
async def test_unexpected_delete_error_does_not_abort_the_batch() -> None:
    repo = FakeTaskRepo([_task(1, T), _task(2, T), _task(3, T)])
    repo.crash_delete_ids = {2}
    dispatcher = FakeDispatcher()

    report = await TaskScheduler(repo, dispatcher).scan_once(T)

    assert report.delivered == [1, 3]
    assert report.delete_failed == [2]
    assert [m.text for m in dispatcher.sent] == ["task 1", "task 2", "task 3"]
    assert set(repo.tasks) == {2}


@pytest.mark.asyncio
async def test_loop_survives_a_crashing_cycle() -> None:
    clock = FixedClock(T + timedelta(seconds=5))
    repo = FakeTaskRepo([_task(1, T)])
    repo.crash_find_times = 2
    dispatcher = FakeDispatcher()
    scheduler = TaskScheduler(repo, dispatcher, interval_seconds=0.01, clock=clock)

    scheduler.start()
    for _ in range(200):
        if dispatcher.sent:
            break
        await asyncio.sleep(0.01)
    still_running = scheduler.running
    await scheduler.stop()

    assert still_running
    assert repo.crash_find_times == 0
    assert [m.text for m in dispatcher.sent] == ["task 1"]
    assert repo.tasks == {}


@pytest.mark.asyncio
async def test_undecodable_row_does_not_block_delivery(store: TaskStore) -> None:
    good = store.save(NewTask(destination="!room:a", due_at=T, body="still delivered"))
    conn = sqlite3.connect(str(store.db_path))
    try:
        conn.execute(
            "INSERT INTO tasks(destination, due_at, body) VALUES (?, ?, ?)",
            ("!room:a", "", "broken due date"),
        )
        conn.commit()
    finally:
        conn.close()
    dispatcher = FakeDispatcher()

    report = await TaskScheduler(store, dispatcher).scan_once(T)

    assert report.delivered == [good]
    assert [m.text for m in dispatcher.sent] == ["still delivered"]
