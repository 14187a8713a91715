"""Tests for the bounded-retry / override protocol."""

import pytest

from clinical_validation.core.enums import AttemptState, ValidationStatus
from clinical_validation.core.exceptions import (
    ConfigurationError,
    InvalidOverrideRequest,
    InvalidRequestError,
)
from clinical_validation.core.models import AttemptHistory, ValidationResult
from clinical_validation.governance import AttemptTracker

JUSTIFICATION = "Patient has progressive neurologic deficit."


def make_result(status: ValidationStatus, score: int = 4) -> ValidationResult:
    return ValidationResult(status=status, feedback="Add symptom duration.", compliance_score=score)


@pytest.fixture
def tracker():
    return AttemptTracker()


def history_with(tracker, statuses, order_id="ORD-1"):
    history = AttemptHistory(order_id)
    for i, status in enumerate(statuses, start=1):
        tracker.commit(history, f"dictation {i}", make_result(status))
    return history


class TestStateTransitions:
    def test_empty_history_is_first_attempt(self, tracker):
        history = AttemptHistory("ORD-1")
        assert tracker.current_state(history) == AttemptState.FIRST_ATTEMPT
        assert tracker.next_attempt_number(history) == 1

    def test_invalid_attempts_progress_to_override_eligible(self, tracker):
        history = AttemptHistory("ORD-1")
        states = [
            tracker.commit(history, "text", make_result(ValidationStatus.INVALID)).state
            for _ in range(4)
        ]
        assert states == [
            AttemptState.RETRYING,
            AttemptState.RETRYING,
            AttemptState.OVERRIDE_ELIGIBLE,
            AttemptState.OVERRIDE_ELIGIBLE,
        ]
        assert [r.attempt_number for r in history.records] == [1, 2, 3, 4]

    def test_valid_result_resolves(self, tracker):
        history = history_with(tracker, [ValidationStatus.INVALID, ValidationStatus.VALID])
        assert tracker.current_state(history) == AttemptState.RESOLVED
        assert not tracker.is_override_eligible(history)

    def test_resolved_order_can_be_revalidated(self, tracker):
        history = history_with(tracker, [ValidationStatus.VALID])
        record = tracker.commit(history, "amended", make_result(ValidationStatus.NEEDS_CLARIFICATION))
        assert record.attempt_number == 2
        assert record.state == AttemptState.RETRYING

    def test_dictation_snapshot_is_recorded(self, tracker):
        history = history_with(tracker, [ValidationStatus.INVALID])
        assert history.latest.dictation_snapshot == "dictation 1"

    def test_custom_threshold(self):
        tracker = AttemptTracker(override_attempt_threshold=1)
        history = history_with(tracker, [ValidationStatus.INVALID])
        assert tracker.current_state(history) == AttemptState.OVERRIDE_ELIGIBLE

    def test_threshold_must_be_positive(self):
        with pytest.raises(ConfigurationError):
            AttemptTracker(override_attempt_threshold=0)


class TestOverride:
    def test_override_after_threshold(self, tracker):
        history = history_with(tracker, [ValidationStatus.INVALID] * 3)
        latest = history.latest.result

        record = tracker.apply_override(history, "dictation 4", latest, f"  {JUSTIFICATION}  ")

        assert record.attempt_number == 4
        assert record.state == AttemptState.OVERRIDDEN
        assert record.result.overridden
        assert record.result.override_justification == JUSTIFICATION
        assert record.result.status == ValidationStatus.INVALID
        assert not latest.overridden
        assert tracker.current_state(history).is_terminal

    @pytest.mark.parametrize(
        "statuses, justification, reason",
        [
            ([], JUSTIFICATION, "no prior attempts to override"),
            ([ValidationStatus.INVALID] * 2, JUSTIFICATION, "override requires at least 3 attempts"),
            (
                [ValidationStatus.INVALID, ValidationStatus.INVALID, ValidationStatus.VALID],
                JUSTIFICATION,
                "latest attempt is already valid",
            ),
            ([ValidationStatus.INVALID] * 3, "too short", "justification must be at least 20 characters"),
            ([ValidationStatus.INVALID] * 3, "   ", "justification must be at least 20 characters"),
            ([ValidationStatus.INVALID] * 3, None, "justification must be at least 20 characters"),
        ],
    )
    def test_rejected_overrides(self, tracker, statuses, justification, reason):
        history = history_with(tracker, statuses)
        before = history.records

        with pytest.raises(InvalidOverrideRequest) as exc_info:
            tracker.check_override(history, justification)

        assert exc_info.value.reason == reason
        assert exc_info.value.order_id == "ORD-1"
        assert history.records == before

    def test_whitespace_padding_does_not_count(self, tracker):
        history = history_with(tracker, [ValidationStatus.INVALID] * 3)
        padded = "x" * 19 + " " * 10
        with pytest.raises(InvalidOverrideRequest):
            tracker.check_override(history, padded)
        tracker.check_override(history, "x" * 20)

    def test_overridden_order_accepts_nothing_further(self, tracker):
        history = history_with(tracker, [ValidationStatus.INVALID] * 3)
        tracker.apply_override(history, "d", history.latest.result, JUSTIFICATION)

        with pytest.raises(InvalidOverrideRequest) as exc_info:
            tracker.check_override(history, JUSTIFICATION)
        assert exc_info.value.reason == "order has already been overridden"

        with pytest.raises(InvalidRequestError):
            tracker.commit(history, "again", make_result(ValidationStatus.VALID, 9))
        assert len(history) == 4


class TestAttemptHistory:
    def test_attempt_numbers_must_increase(self, tracker):
        history = history_with(tracker, [ValidationStatus.INVALID])
        record = history.latest
        with pytest.raises(InvalidRequestError):
            history.append(record)

    def test_history_rebuilt_from_records(self, tracker):
        original = history_with(tracker, [ValidationStatus.INVALID] * 2)
        rebuilt = AttemptHistory("ORD-1", list(original.records))
        assert tracker.next_attempt_number(rebuilt) == 3
