"""Tests for sharing one IssueStore between threads."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from issuestore.core import Issue, IssueStore
from issuestore.errors import OperationTimeoutError
from issuestore.validation import parse_issue_id


class TestConcurrentCreates:
    def test_parallel_creates_get_distinct_ids(self, store: IssueStore) -> None:
        def worker(n: int) -> list[str]:
            return [store.create_issue(Issue(f"w{n}-{i}"), actor=f"worker-{n}").id for i in range(10)]

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(worker, range(8)))

        ids = [issue_id for batch in results for issue_id in batch]
        assert len(ids) == 80
        assert len(set(ids)) == 80
        numbers = sorted(parse_issue_id(i)[1] for i in ids)  # type: ignore[index]
        assert numbers == list(range(1, 81))
        assert store.count_events() == 80

    def test_ids_increase_within_a_thread(self, store: IssueStore) -> None:
        def worker(n: int) -> list[int]:
            created = [store.create_issue(Issue(f"w{n}-{i}"), actor="tester") for i in range(5)]
            return [parse_issue_id(c.id)[1] for c in created]  # type: ignore[index]

        with ThreadPoolExecutor(max_workers=4) as pool:
            for numbers in pool.map(worker, range(4)):
                assert numbers == sorted(numbers)

    def test_parallel_updates_each_record_an_event(self, store: IssueStore) -> None:
        issue = store.create_issue(Issue("Contended"), actor="tester")

        def worker(n: int) -> None:
            store.update_issue(issue.id, {"notes": f"note {n}"}, actor=f"worker-{n}")

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(worker, range(20)))

        assert store.count_events(issue.id) == 21

    def test_readers_run_alongside_writers(self, store: IssueStore) -> None:
        stop = threading.Event()
        errors: list[BaseException] = []

        def reader() -> None:
            while not stop.is_set():
                try:
                    store.search_issues("w")
                except BaseException as exc:  # noqa: BLE001
                    errors.append(exc)
                    return

        threads = [threading.Thread(target=reader) for _ in range(3)]
        for t in threads:
            t.start()
        try:
            for i in range(30):
                store.create_issue(Issue(f"w{i}"), actor="tester")
        finally:
            stop.set()
            for t in threads:
                t.join()
        assert errors == []
        assert len(store.search_issues("w")) == 30


class TestLockWaitDeadline:
    def test_waiting_on_a_busy_store_times_out(self, store: IssueStore) -> None:
        holding = threading.Event()
        release = threading.Event()

        def hog() -> None:
            with store._lock:
                holding.set()
                release.wait(5)

        t = threading.Thread(target=hog)
        t.start()
        try:
            assert holding.wait(5)
            with pytest.raises(OperationTimeoutError) as exc_info:
                store.create_issue(Issue("Blocked"), actor="tester", timeout=0.05)
            assert exc_info.value.rolled_back is False
        finally:
            release.set()
            t.join()
        assert store.search_issues() == []
        # The id handed to the timed-out call is not reused.
        assert store.create_issue(Issue("After"), actor="tester").id == "test-2"
