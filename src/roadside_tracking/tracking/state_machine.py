"""Tracking status state machine."""

from roadside_tracking.core.exceptions import StateError
from roadside_tracking.models import TrackingStatus

VALID_TRANSITIONS: dict[TrackingStatus, set[TrackingStatus]] = {
    TrackingStatus.PREPARING: {
        TrackingStatus.ON_THE_WAY,
        TrackingStatus.COMPLETED,
        TrackingStatus.CANCELLED,
    },
    TrackingStatus.ON_THE_WAY: {
        TrackingStatus.ARRIVING,
        TrackingStatus.COMPLETED,
        TrackingStatus.CANCELLED,
    },
    TrackingStatus.ARRIVING: {TrackingStatus.COMPLETED, TrackingStatus.CANCELLED},
    TrackingStatus.COMPLETED: set(),
    TrackingStatus.CANCELLED: set(),
}


class StatusMachine:
    """Holds the current status and enforces forward-only transitions.

    Skipping forward to ``completed`` is allowed because live sessions complete
    on the order's stored status without passing through ``arriving``.
    """

    def __init__(self, initial: TrackingStatus = TrackingStatus.PREPARING) -> None:
        self._status = initial
        self.history: list[TrackingStatus] = [initial]

    @property
    def status(self) -> TrackingStatus:
        return self._status

    @property
    def is_terminal(self) -> bool:
        return self._status.is_terminal

    def can_transition(self, new_status: TrackingStatus) -> bool:
        return new_status in VALID_TRANSITIONS[self._status]

    def transition_to(self, new_status: TrackingStatus) -> None:
        """Transition to a new status with validation."""
        if self._status.is_terminal:
            raise StateError(
                f"Cannot transition from terminal state {self._status.value}",
                details={"from": self._status.value, "to": new_status.value},
            )

        if not self.can_transition(new_status):
            raise StateError(
                f"Invalid transition from {self._status.value} to {new_status.value}",
                details={"from": self._status.value, "to": new_status.value},
            )

        self._status = new_status
        self.history.append(new_status)
