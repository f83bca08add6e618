from .service import SessionHandle, TrackingService
from .session import LiveTrackingSession, SimulatedTrackingSession, TrackingSession

__all__ = [
    "LiveTrackingSession",
    "SessionHandle",
    "SimulatedTrackingSession",
    "TrackingService",
    "TrackingSession",
]
