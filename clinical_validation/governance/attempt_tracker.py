"""
Attempt Tracker - Bounded Retry and Override Governance

Every validation of an order is recorded as an AttemptRecord in the
caller-owned AttemptHistory. The tracker decides which protocol state the
order reaches after each attempt and whether a physician may override a
non-passing result.

State Machine:
    FIRST_ATTEMPT ──(not valid, n < threshold)──► RETRYING
    RETRYING ──────(not valid, n ≥ threshold)──► OVERRIDE_ELIGIBLE
    OVERRIDE_ELIGIBLE ──(override + justification)──► OVERRIDDEN (terminal)
    any ───────────(valid)─────────────────────► RESOLVED

A resolved order may be revalidated with new dictation; an overridden
order accepts nothing further.

Author: Shubham Singh
Date: December 2025
"""

import dataclasses
from typing import Optional

from loguru import logger

from clinical_validation.core.config import ConfigDefaults
from clinical_validation.core.enums import AttemptState
from clinical_validation.core.exceptions import (
    ConfigurationError,
    InvalidOverrideRequest,
    InvalidRequestError,
)
from clinical_validation.core.models import AttemptHistory, AttemptRecord, ValidationResult


class AttemptTracker:
    """
    Applies the retry/override protocol to an order's attempt history.

    Args:
        override_attempt_threshold: Attempt number from which an override
            becomes possible
        min_override_justification_length: Minimum characters (trimmed)
            of an override justification

    Example:
        >>> tracker = AttemptTracker()
        >>> history = AttemptHistory("ORD-1")
        >>> tracker.current_state(history)
        <AttemptState.FIRST_ATTEMPT: 'first_attempt'>
    """

    def __init__(
        self,
        override_attempt_threshold: int = ConfigDefaults.DEFAULT_OVERRIDE_ATTEMPT_THRESHOLD,
        min_override_justification_length: int = (
            ConfigDefaults.DEFAULT_MIN_OVERRIDE_JUSTIFICATION_LENGTH
        ),
    ):
        if override_attempt_threshold < 1:
            raise ConfigurationError(
                "Override attempt threshold must be at least 1",
                context={"override_attempt_threshold": override_attempt_threshold},
            )
        self._threshold = override_attempt_threshold
        self._min_justification = min_override_justification_length

    @property
    def override_attempt_threshold(self) -> int:
        return self._threshold

    @property
    def min_override_justification_length(self) -> int:
        return self._min_justification

    # =========================================================================
    # STAGE 1: STATE QUERIES
    # =========================================================================

    def current_state(self, history: AttemptHistory) -> AttemptState:
        latest = history.latest
        return latest.state if latest else AttemptState.FIRST_ATTEMPT

    def next_attempt_number(self, history: AttemptHistory) -> int:
        return history.latest_attempt_number + 1

    def state_after(self, attempt_number: int, result: ValidationResult) -> AttemptState:
        """State an order reaches once an attempt with this result is committed."""
        if result.is_valid:
            return AttemptState.RESOLVED
        if attempt_number >= self._threshold:
            return AttemptState.OVERRIDE_ELIGIBLE
        return AttemptState.RETRYING

    def is_override_eligible(self, history: AttemptHistory) -> bool:
        latest = history.latest
        return (
            latest is not None
            and latest.state != AttemptState.OVERRIDDEN
            and not latest.result.is_valid
            and latest.attempt_number >= self._threshold
        )

    # =========================================================================
    # STAGE 2: COMMIT
    # =========================================================================

    def commit(
        self, history: AttemptHistory, dictation: str, result: ValidationResult
    ) -> AttemptRecord:
        """
        Append a regular attempt to the history.

        Raises:
            InvalidRequestError: If the order was already overridden
        """
        if self.current_state(history).is_terminal:
            raise InvalidRequestError(
                "Order was overridden; no further attempts are accepted",
                context={"order_id": history.order_id},
            )

        attempt_number = self.next_attempt_number(history)
        record = AttemptRecord(
            attempt_number=attempt_number,
            dictation_snapshot=dictation,
            result=result,
            state=self.state_after(attempt_number, result),
        )
        history.append(record)

        logger.debug(
            f"Attempt committed | Order: {history.order_id} | "
            f"Attempt: {attempt_number} | State: {record.state.value}"
        )
        return record

    # =========================================================================
    # STAGE 3: OVERRIDE
    # =========================================================================

    def check_override(self, history: AttemptHistory, justification: Optional[str]) -> None:
        """
        Verify an override is permitted. Never mutates the history.

        Raises:
            InvalidOverrideRequest: If the order is not eligible or the
                justification is too short
        """
        latest = history.latest
        if latest is not None and latest.state == AttemptState.OVERRIDDEN:
            raise InvalidOverrideRequest(history.order_id, "order has already been overridden")

        if latest is None:
            raise InvalidOverrideRequest(
                history.order_id,
                "no prior attempts to override",
                context={"threshold": self._threshold},
            )

        if latest.result.is_valid:
            raise InvalidOverrideRequest(history.order_id, "latest attempt is already valid")

        if latest.attempt_number < self._threshold:
            raise InvalidOverrideRequest(
                history.order_id,
                f"override requires at least {self._threshold} attempts",
                context={"attempts": latest.attempt_number, "threshold": self._threshold},
            )

        length = len((justification or "").strip())
        if length < self._min_justification:
            raise InvalidOverrideRequest(
                history.order_id,
                f"justification must be at least {self._min_justification} characters",
                context={"length": length},
            )

    def apply_override(
        self,
        history: AttemptHistory,
        dictation: str,
        result: ValidationResult,
        justification: str,
    ) -> AttemptRecord:
        """
        Record an override as a new attempt.

        The committed result is a copy of result with overridden=True and
        the trimmed justification; its status and score are kept as-is.

        Raises:
            InvalidOverrideRequest: If check_override fails
        """
        self.check_override(history, justification)

        overridden = dataclasses.replace(
            result, overridden=True, override_justification=justification.strip()
        )
        record = AttemptRecord(
            attempt_number=self.next_attempt_number(history),
            dictation_snapshot=dictation,
            result=overridden,
            state=AttemptState.OVERRIDDEN,
        )
        history.append(record)

        logger.info(
            f"Override applied | Order: {history.order_id} | "
            f"Attempt: {record.attempt_number} | Justification length: {len(justification.strip())}"
        )
        return record
