"""Customer notifications and order persistence driven by tracking sessions.

The SMS/email/push senders are stubs: they only log. Integrating a real
provider means replacing NotificationService, not the observers below.
"""

import logging

from roadside_tracking.core.exceptions import NetworkError, NotFoundError, WriteConflictError
from roadside_tracking.models import TerminalEvent, TrackingStatus, TrackingUpdate
from roadside_tracking.store.base import OrderStore
from roadside_tracking.store.models import OrderStatus
from roadside_tracking.tracking.session import TrackingSession

logger = logging.getLogger(__name__)


class NotificationService:
    def send_sms(self, to: str, message: str) -> bool:
        logger.info("[SMS MOCK] To: %s | Message: %s", to, message)
        return True

    def send_email(self, to: str, subject: str, body: str) -> bool:
        logger.info("[EMAIL MOCK] To: %s | Subject: %s | Body: %s", to, subject, body)
        return True

    def send_push(self, user_id: str, title: str, body: str) -> bool:
        logger.info("[PUSH MOCK] To User: %s | Title: %s | Body: %s", user_id, title, body)
        return True


class TrackingNotifier:
    """Pushes arrival and cancellation messages to the customer of a session."""

    def __init__(self, notifications: NotificationService, customer_id: str) -> None:
        self.notifications = notifications
        self.customer_id = customer_id
        self._provider_name = "Your provider"
        self._arriving_sent = False

    def attach(self, session: TrackingSession) -> None:
        self._provider_name = session.config.provider_display_name
        session.on_update(self.handle_update)
        session.on_terminal(self.handle_terminal)

    def handle_update(self, update: TrackingUpdate) -> None:
        if update.status == TrackingStatus.ARRIVING and not self._arriving_sent:
            self._arriving_sent = True
            self.notifications.send_push(
                self.customer_id,
                "Almost there!",
                f"{self._provider_name} is arriving at your location soon.",
            )

    def handle_terminal(self, event: TerminalEvent) -> None:
        if event.status == TrackingStatus.COMPLETED:
            self.notifications.send_push(
                self.customer_id,
                "Service provider arrived",
                f"{self._provider_name} has arrived at your location.",
            )
        else:
            self.notifications.send_push(
                self.customer_id, "Order cancelled", "Your order has been cancelled."
            )


class OrderStatusRecorder:
    """Persists a session's terminal outcome on its order.

    Sessions never write to the store themselves; this observer does it on
    their behalf. Store failures are logged, since they surface after the
    session has already reached its terminal state.
    """

    TERMINAL_TO_ORDER = {
        TrackingStatus.COMPLETED: OrderStatus.COMPLETED,
        TrackingStatus.CANCELLED: OrderStatus.CANCELLED,
    }

    def __init__(self, store: OrderStore, order_id: str) -> None:
        self.store = store
        self.order_id = order_id
        self.recorded: OrderStatus | None = None

    def attach(self, session: TrackingSession) -> None:
        session.on_terminal(self.handle_terminal)

    def handle_terminal(self, event: TerminalEvent) -> None:
        status = self.TERMINAL_TO_ORDER[event.status]
        try:
            current = self.store.get_order(self.order_id)
            if current.status == status:
                # Session ended because the stored order already says so
                self.recorded = status
                return
            self.store.update_order_status(
                self.order_id,
                status,
                fields={"completed_at": event.occurred_at.isoformat()}
                if status == OrderStatus.COMPLETED
                else {"cancelled_at": event.occurred_at.isoformat()},
                expected_status=current.status,
            )
            self.recorded = status
        except (NotFoundError, WriteConflictError, NetworkError) as e:
            logger.error("Failed to mark order %s %s: %s", self.order_id, status.value, e)
