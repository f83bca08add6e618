"""Demo runner: one simulated tracking session on a real-time SimPy clock.

Usage:
    python -m roadside_tracking
    python -m roadside_tracking --lat 19.0760 --lng 72.8777 --speed 20
"""

import argparse
import logging
import random

import simpy.rt

from roadside_tracking.models import TerminalEvent, TrackingUpdate
from roadside_tracking.notifications import NotificationService, TrackingNotifier
from roadside_tracking.settings import get_settings
from roadside_tracking.sim_logging import setup_logging
from roadside_tracking.store.memory import InMemoryOrderStore
from roadside_tracking.tracking.service import TrackingService

logger = logging.getLogger(__name__)

DEMO_ORDER_ID = "demo-order"
DEMO_CUSTOMER_ID = "demo-customer"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a simulated roadside-assistance tracking session")
    parser.add_argument(
        "--lat", type=float, default=28.6139, help="Customer latitude (default: New Delhi)"
    )
    parser.add_argument(
        "--lng", type=float, default=77.2090, help="Customer longitude (default: New Delhi)"
    )
    parser.add_argument(
        "--provider", type=str, default="Ravi (Fuel Delivery)", help="Provider display name"
    )
    parser.add_argument(
        "--phone", type=str, default="+91 98765 43210", help="Provider contact phone"
    )
    parser.add_argument(
        "--speed",
        type=float,
        default=10.0,
        help="Simulation speed multiplier over wall-clock time (default: 10)",
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed for the route")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    setup_logging(
        level=settings.tracking.log_level,
        json_output=settings.tracking.log_format == "json",
    )

    if args.speed <= 0:
        logger.error("--speed must be positive, got %s", args.speed)
        return 2

    env = simpy.rt.RealtimeEnvironment(factor=1 / args.speed, strict=False)
    store = InMemoryOrderStore()
    store.insert_order(
        {
            "serviceType": "fuel",
            "status": "assigned",
            "userId": DEMO_CUSTOMER_ID,
            "amount": 450,
            "location": {"lat": args.lat, "lng": args.lng},
            "details": {"fuelType": "petrol", "quantity": 5},
        },
        order_id=DEMO_ORDER_ID,
    )

    service = TrackingService(
        env, store=store, settings=settings.tracking, rng=random.Random(args.seed)
    )
    handle = service.start_for_order(
        DEMO_ORDER_ID, provider_display_name=args.provider, provider_contact_phone=args.phone
    )
    TrackingNotifier(NotificationService(), DEMO_CUSTOMER_ID).attach(service.get_session(handle))

    done = env.event()

    def log_update(update: TrackingUpdate) -> None:
        if update.step is not None and update.step % 10 != 0:
            return
        logger.info(
            "status=%s step=%s distance=%.2fkm eta=%smin",
            update.status.value,
            update.step,
            update.distance_km or 0.0,
            update.eta_minutes,
        )

    def finish(event: TerminalEvent) -> None:
        logger.info("Session %s finished: %s", event.session_id, event.status.value)
        done.succeed(event)

    service.on_update(handle, log_update)
    service.on_completed(handle, finish)
    service.on_cancelled(handle, finish)

    try:
        env.run(until=done)
    except KeyboardInterrupt:
        logger.info("Interrupted, cancelling session")
        service.cancel(handle, reason="interrupted")
        return 130
    finally:
        service.discard(handle)
    return 0
