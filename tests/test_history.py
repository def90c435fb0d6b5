"""Tests for the undo/redo history."""

import pytest

from timeline_core.services.history import History, HistoryState


class CounterCommand:
    """Adds ``step`` to a shared counter; undo subtracts it."""

    def __init__(self, counter: dict, step: int = 1, *, fail_on: str | None = None):
        self.id = f"cmd-{step}"
        self.description = f"add {step}"
        self.counter = counter
        self.step = step
        self.fail_on = fail_on

    @property
    def type(self) -> str:
        return "counter"

    def execute(self) -> None:
        if self.fail_on == "execute":
            raise RuntimeError("boom")
        self.counter["value"] += self.step

    def undo(self) -> None:
        if self.fail_on == "undo":
            raise RuntimeError("boom")
        self.counter["value"] -= self.step


class ReentrantCommand(CounterCommand):
    """Tries to drive the history from inside its own execute."""

    def __init__(self, counter: dict, history: History):
        super().__init__(counter)
        self.history = history
        self.nested_results: list[bool] = []

    def execute(self) -> None:
        super().execute()
        self.nested_results.append(self.history.undo())
        self.nested_results.append(self.history.redo())
        self.nested_results.append(self.history.execute(CounterCommand(self.counter, 100)))


@pytest.fixture
def counter() -> dict:
    return {"value": 0}


class TestExecute:
    """Tests for execute."""

    def test_execute_runs_and_records(self, counter):
        history = History(capacity=10)
        assert history.execute(CounterCommand(counter, 2)) is True
        assert counter["value"] == 2
        assert history.can_undo()
        assert not history.can_redo()
        assert history.total_executed == 1
        assert history.undo_description == "add 2"

    def test_new_execute_clears_redo(self, counter):
        history = History(capacity=10)
        for step in (1, 2, 3):
            history.execute(CounterCommand(counter, step))
        history.undo()
        history.undo()
        assert history.can_redo()

        history.execute(CounterCommand(counter, 10))
        assert not history.can_redo()
        assert history.redo() is False
        assert counter["value"] == 11

    def test_failed_execute_is_not_recorded(self, counter):
        history = History(capacity=10)
        history.execute(CounterCommand(counter, 1))
        history.undo()

        assert history.execute(CounterCommand(counter, 5, fail_on="execute")) is False
        assert history.state is HistoryState.IDLE
        assert history.undo_depth == 0
        # redo stack untouched
        assert history.redo_depth == 1
        assert history.total_executed == 1

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            History(capacity=0)


class TestUndoRedo:
    """Tests for undo and redo."""

    def test_undo_then_redo(self, counter):
        history = History(capacity=10)
        history.execute(CounterCommand(counter, 3))

        assert history.undo() is True
        assert counter["value"] == 0
        assert history.redo_description == "add 3"

        assert history.redo() is True
        assert counter["value"] == 3
        assert history.undo_description == "add 3"

    def test_empty_stacks_are_noops(self, counter):
        history = History(capacity=10)
        assert history.undo() is False
        assert history.redo() is False
        assert history.undo_description is None
        assert history.redo_description is None

    def test_failed_undo_drops_only_that_command(self, counter):
        history = History(capacity=10)
        history.execute(CounterCommand(counter, 1))
        history.execute(CounterCommand(counter, 2, fail_on="undo"))

        assert history.undo() is False
        assert history.state is HistoryState.IDLE
        assert history.undo_depth == 1
        assert history.redo_depth == 0

        assert history.undo() is True
        assert counter["value"] == 2

    def test_failed_redo_is_dropped(self, counter):
        history = History(capacity=10)
        cmd = CounterCommand(counter, 4)
        history.execute(cmd)
        history.undo()
        cmd.fail_on = "execute"

        assert history.redo() is False
        assert history.redo_depth == 0
        assert history.undo_depth == 0

    def test_clear(self, counter):
        history = History(capacity=10)
        history.execute(CounterCommand(counter, 1))
        history.execute(CounterCommand(counter, 1))
        history.undo()
        history.clear()
        assert not history.can_undo()
        assert not history.can_redo()


class TestReentrancy:
    """Tests for the busy guard."""

    def test_nested_transitions_are_rejected(self, counter):
        history = History(capacity=10)
        history.execute(CounterCommand(counter, 1))
        cmd = ReentrantCommand(counter, history)

        assert history.execute(cmd) is True
        assert cmd.nested_results == [False, False, False]
        assert counter["value"] == 2
        assert history.undo_depth == 2
        assert history.state is HistoryState.IDLE

    def test_add_without_execute_rejected_while_busy(self, counter):
        history = History(capacity=10)
        history.state = HistoryState.BUSY
        assert history.add_without_execute(CounterCommand(counter)) is False
        assert not history.can_undo()


class TestCapacity:
    """Tests for capacity eviction."""

    def test_oldest_entries_are_evicted(self, counter):
        history = History(capacity=3)
        for step in (1, 2, 4, 8, 16):
            history.execute(CounterCommand(counter, step))

        assert history.total_executed == 5
        assert history.undo_depth == 3

        undone = 0
        while history.undo():
            undone += 1
        assert undone == 3
        # 1 and 2 can never be undone
        assert counter["value"] == 3


class TestAddWithoutExecute:
    """Tests for recording already-applied edits."""

    def test_records_without_running(self, counter):
        history = History(capacity=10)
        cmd = CounterCommand(counter, 5)
        counter["value"] = 5  # applied externally

        assert history.add_without_execute(cmd) is True
        assert counter["value"] == 5
        assert history.total_executed == 1

        history.undo()
        assert counter["value"] == 0
        history.redo()
        assert counter["value"] == 5

    def test_clears_redo(self, counter):
        history = History(capacity=10)
        history.execute(CounterCommand(counter, 1))
        history.undo()
        history.add_without_execute(CounterCommand(counter, 2))
        assert not history.can_redo()
