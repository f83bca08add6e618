import random
from datetime import UTC, datetime

import pytest
import simpy

from roadside_tracking.models import Coordinate
from roadside_tracking.settings import TrackingSettings
from roadside_tracking.store.memory import InMemoryOrderStore
from roadside_tracking.tracking.clock import TimeManager
from roadside_tracking.tracking.service import TrackingService

SIM_START = datetime(2026, 3, 14, 9, 30, tzinfo=UTC)


@pytest.fixture
def env() -> simpy.Environment:
    """Fresh SimPy environment; time starts at 0 seconds."""
    return simpy.Environment()


@pytest.fixture
def time_manager(env: simpy.Environment) -> TimeManager:
    return TimeManager(env, start_time=SIM_START)


@pytest.fixture
def tracking_settings() -> TrackingSettings:
    return TrackingSettings()


@pytest.fixture
def rng() -> random.Random:
    """Seeded RNG for deterministic routes and preparation delays."""
    return random.Random(42)


@pytest.fixture
def order_store() -> InMemoryOrderStore:
    return InMemoryOrderStore()


@pytest.fixture
def service(
    env: simpy.Environment,
    order_store: InMemoryOrderStore,
    tracking_settings: TrackingSettings,
    rng: random.Random,
    time_manager: TimeManager,
) -> TrackingService:
    return TrackingService(
        env,
        store=order_store,
        settings=tracking_settings,
        rng=rng,
        time_manager=time_manager,
    )


@pytest.fixture
def delhi() -> Coordinate:
    return Coordinate(latitude=28.6139, longitude=77.2090)


@pytest.fixture
def mumbai() -> Coordinate:
    return Coordinate(latitude=19.0760, longitude=72.8777)


@pytest.fixture
def order_document(delhi: Coordinate) -> dict:
    """Order as written by the customer request screen."""
    return {
        "serviceType": "fuel",
        "status": "assigned",
        "userId": "customer-1",
        "driverId": "driver-7",
        "amount": 450,
        "createdAt": "2026-03-14T09:00:00Z",
        "location": {"lat": delhi.latitude, "lng": delhi.longitude, "address": "Connaught Place"},
        "details": {"fuelType": "petrol", "quantity": 5},
    }
