"""Unit tests for the pure run policies: resolver, gate and backoff.

Tests cover:
- ``resolve`` — multi-item requests drop the show id; SINGLE requires a
  positive one.
- ``is_time_for_sync`` / ``should_run`` — the strict five-minute rate limit,
  forward-dated ``last_update`` values, and the immediate/SINGLE bypass.
- ``next_state`` — the backoff table for consecutive failures, reset on
  success, and the interaction with the gate.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from showsync.core.exceptions import InvalidSyncRequestError, OrchestratorError
from showsync.core.models import EPOCH, RunState, SyncRequest, SyncType, UpdateResult
from showsync.orchestrator.backoff import BACKOFF_MAX_FAILURES, next_state
from showsync.orchestrator.gate import SYNC_INTERVAL_MINIMUM, is_time_for_sync, should_run
from showsync.orchestrator.resolver import ResolvedSync, is_multi_item, resolve

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class TestResolve:
    @pytest.mark.parametrize("sync_type", [SyncType.DELTA, SyncType.FULL])
    def test_multi_item_ignores_show_id(self, sync_type: SyncType) -> None:
        resolved = resolve(SyncRequest(sync_type, show_id=42))
        assert resolved == ResolvedSync(sync_type, None)
        assert resolved.is_multi_item

    def test_single_keeps_show_id(self) -> None:
        resolved = resolve(SyncRequest(SyncType.SINGLE, show_id=81189))
        assert resolved == ResolvedSync(SyncType.SINGLE, 81189)
        assert not resolved.is_multi_item

    @pytest.mark.parametrize("show_id", [None, 0, -5])
    def test_single_without_positive_id_is_rejected(self, show_id: int | None) -> None:
        with pytest.raises(InvalidSyncRequestError, match="positive show id"):
            resolve(SyncRequest(SyncType.SINGLE, show_id=show_id))

    def test_invalid_request_is_an_orchestrator_error(self) -> None:
        assert issubclass(InvalidSyncRequestError, OrchestratorError)

    def test_is_multi_item(self) -> None:
        assert is_multi_item(SyncType.DELTA)
        assert is_multi_item(SyncType.FULL)
        assert not is_multi_item(SyncType.SINGLE)


# ---------------------------------------------------------------------------
# Gate
# ---------------------------------------------------------------------------


class TestGate:
    def test_interval_is_five_minutes(self) -> None:
        assert SYNC_INTERVAL_MINIMUM == timedelta(minutes=5)

    def test_exactly_five_minutes_is_not_enough(self) -> None:
        assert not is_time_for_sync(NOW, NOW - timedelta(minutes=5))

    def test_just_over_five_minutes_passes(self) -> None:
        assert is_time_for_sync(NOW, NOW - timedelta(minutes=5, milliseconds=1))

    def test_never_synced_passes(self) -> None:
        assert is_time_for_sync(NOW, EPOCH)

    def test_forward_dated_last_update_keeps_gate_closed(self) -> None:
        last = NOW + timedelta(minutes=3)
        assert not is_time_for_sync(NOW + timedelta(minutes=8), last)
        assert is_time_for_sync(NOW + timedelta(minutes=8, seconds=1), last)

    def test_regular_delta_is_rate_limited(self) -> None:
        recent = NOW - timedelta(minutes=1)
        assert not should_run(NOW, recent, SyncRequest(SyncType.DELTA))
        assert not should_run(NOW, recent, SyncRequest(SyncType.FULL))

    def test_immediate_always_runs(self) -> None:
        request = SyncRequest(SyncType.FULL, immediate=True, expedited=True)
        assert should_run(NOW, NOW, request)

    def test_regular_single_always_runs(self) -> None:
        assert should_run(NOW, NOW, SyncRequest(SyncType.SINGLE, show_id=1))


# ---------------------------------------------------------------------------
# Backoff
# ---------------------------------------------------------------------------


class TestBackoff:
    def test_success_resets_counter(self) -> None:
        state = next_state(RunState(NOW - timedelta(hours=1), 3), NOW, UpdateResult.SUCCESS)
        assert state == RunState(last_update=NOW, failed_count=0)

    @pytest.mark.parametrize(
        ("failed", "shift_minutes"),
        [(0, -1), (1, 3), (2, 11), (3, 27)],
    )
    def test_failure_shifts_last_update(self, failed: int, shift_minutes: int) -> None:
        state = next_state(RunState(EPOCH, failed), NOW, UpdateResult.INCOMPLETE)
        assert state.last_update == NOW + timedelta(minutes=shift_minutes)
        assert state.failed_count == failed + 1

    @pytest.mark.parametrize("failed", [BACKOFF_MAX_FAILURES, BACKOFF_MAX_FAILURES + 3])
    def test_failure_cap_uses_now(self, failed: int) -> None:
        state = next_state(RunState(EPOCH, failed), NOW, UpdateResult.INCOMPLETE)
        assert state == RunState(last_update=NOW, failed_count=failed + 1)

    @pytest.mark.parametrize(
        ("failed", "wait_minutes"),
        [(0, 4), (1, 8), (2, 16), (3, 32), (4, 5)],
    )
    def test_gate_reopens_after_backoff_interval(self, failed: int, wait_minutes: int) -> None:
        state = next_state(RunState(EPOCH, failed), NOW, UpdateResult.INCOMPLETE)
        wait = timedelta(minutes=wait_minutes)
        assert not is_time_for_sync(NOW + wait, state.last_update)
        assert is_time_for_sync(NOW + wait + timedelta(seconds=1), state.last_update)

    def test_consecutive_failures_count_up(self) -> None:
        state = RunState.initial()
        for expected in range(1, 7):
            state = next_state(state, NOW, UpdateResult.INCOMPLETE)
            assert state.failed_count == expected
