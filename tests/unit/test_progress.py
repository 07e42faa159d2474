"""Unit tests for ``SyncProgress``: step log, error flag and listener events."""

from __future__ import annotations

import logging

import pytest

from showsync.orchestrator.progress import ProgressEvent, SyncProgress, SyncStep


class TestSyncProgress:
    def test_initial_state(self) -> None:
        progress = SyncProgress()
        assert progress.current_step is None
        assert progress.steps == []
        assert not progress.had_errors
        assert not progress.finished

    def test_publish_records_steps_in_order(self) -> None:
        progress = SyncProgress()
        progress.publish(SyncStep.PRIMARY)
        progress.publish(SyncStep.CONFIG)
        assert progress.steps == [SyncStep.PRIMARY, SyncStep.CONFIG]
        assert progress.current_step is SyncStep.CONFIG

    def test_record_error_marks_current_step(self) -> None:
        progress = SyncProgress()
        progress.publish(SyncStep.PRIMARY)
        progress.publish(SyncStep.CONFIG)
        progress.record_error()
        assert progress.had_errors
        assert progress.failed_steps == [SyncStep.CONFIG]

    def test_record_error_is_idempotent(self) -> None:
        progress = SyncProgress()
        progress.publish(SyncStep.SOCIAL)
        progress.record_error()
        progress.record_error()
        assert progress.failed_steps == [SyncStep.SOCIAL]

    def test_record_error_before_any_step_sets_flag_only(self) -> None:
        progress = SyncProgress()
        progress.record_error()
        assert progress.had_errors
        assert progress.failed_steps == []

    def test_listeners_receive_events(self) -> None:
        events: list[ProgressEvent] = []
        progress = SyncProgress([events.append])
        progress.publish(SyncStep.PRIMARY)
        progress.record_error()
        progress.publish(SyncStep.CONFIG)
        progress.publish_finished()

        assert events == [
            ProgressEvent(step=SyncStep.PRIMARY, had_errors=False),
            ProgressEvent(step=SyncStep.CONFIG, had_errors=True),
            ProgressEvent(
                step=None,
                finished=True,
                had_errors=True,
                failed_step=SyncStep.PRIMARY,
            ),
        ]
        assert progress.finished

    def test_listener_added_later_sees_following_events(self) -> None:
        events: list[ProgressEvent] = []
        progress = SyncProgress()
        progress.publish(SyncStep.PRIMARY)
        progress.add_listener(events.append)
        progress.publish_finished()
        assert [e.finished for e in events] == [True]

    def test_failing_listener_is_isolated(self, caplog: pytest.LogCaptureFixture) -> None:
        def broken(event: ProgressEvent) -> None:
            raise RuntimeError("listener bug")

        events: list[ProgressEvent] = []
        progress = SyncProgress([broken, events.append])
        with caplog.at_level(logging.WARNING, logger="showsync.orchestrator.progress"):
            progress.publish(SyncStep.PRIMARY)
            progress.publish_finished()

        assert len(events) == 2
        assert any("listener" in r.message for r in caplog.records)

    def test_format_report(self) -> None:
        progress = SyncProgress()
        assert progress.format_report() == "Progress: (no steps) | errors: none"
        progress.publish(SyncStep.PRIMARY)
        progress.publish(SyncStep.CONFIG)
        progress.record_error()
        progress.publish(SyncStep.SOCIAL)
        assert progress.format_report() == "Progress: PRIMARY > CONFIG > SOCIAL | errors: CONFIG"
