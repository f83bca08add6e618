"""Normalization of raw order documents into the canonical Order model.

Order and service-request documents were written by several screens over
time and disagree on field names (``vehicle_type`` vs ``details.vehicleType``,
``driverId`` vs ``driver_id``, flat ``location_lat`` vs nested ``location``).
Everything is mapped here so the tracking core only ever sees ``Order``.
"""

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import pydantic

from roadside_tracking.core.exceptions import InvalidInputError
from roadside_tracking.models import Coordinate
from roadside_tracking.store.models import Order, OrderKind, OrderStatus

_MISSING = object()


def _first(raw: Mapping[str, Any], *paths: str) -> Any:
    """First non-empty value among dotted ``paths`` (``details.vehicleType``)."""
    for path in paths:
        value: Any = raw
        for part in path.split("."):
            if not isinstance(value, Mapping) or part not in value:
                value = _MISSING
                break
            value = value[part]
        if value is not _MISSING and value is not None and value != "":
            return value
    return None


def _parse_kind(value: Any) -> OrderKind:
    text = str(value or "").strip().lower()
    if "fuel" in text:
        return OrderKind.FUEL
    if "mechanic" in text or "repair" in text:
        return OrderKind.MECHANIC
    raise InvalidInputError(f"Unknown order kind: {value!r}", details={"kind": value})


def _parse_status(value: Any) -> OrderStatus:
    text = str(value or "").strip().lower().replace("-", "_").replace(" ", "_")
    if text == "canceled":
        text = "cancelled"
    try:
        return OrderStatus(text)
    except ValueError:
        raise InvalidInputError(
            f"Unknown order status: {value!r}", details={"status": value}
        ) from None


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, Mapping) and "seconds" in value:
        # Document-store timestamp object
        return datetime.fromtimestamp(
            value["seconds"] + value.get("nanoseconds", 0) / 1e9, tz=UTC
        )
    if isinstance(value, int | float) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000.0, tz=UTC)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise InvalidInputError(
                f"Unparseable timestamp: {value!r}", details={"created_at": value}
            ) from None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    raise InvalidInputError(f"Unsupported timestamp: {value!r}", details={"created_at": value})


def _parse_location(raw: Mapping[str, Any]) -> Coordinate | None:
    for key in ("customer_location", "customerLocation", "userLocation", "location"):
        nested = raw.get(key)
        if isinstance(nested, Mapping):
            lat = _first(nested, "lat", "latitude")
            lng = _first(nested, "lng", "lon", "longitude")
            if lat is not None and lng is not None:
                return _coordinate(lat, lng)

    lat = _first(raw, "location_lat", "lat", "latitude")
    lng = _first(raw, "location_lng", "lng", "longitude")
    if lat is not None and lng is not None:
        return _coordinate(lat, lng)
    return None


def _coordinate(lat: Any, lng: Any) -> Coordinate:
    try:
        return Coordinate(latitude=float(lat), longitude=float(lng))
    except (TypeError, ValueError, pydantic.ValidationError) as e:
        raise InvalidInputError(
            f"Invalid order location ({lat!r}, {lng!r})", details={"lat": lat, "lng": lng}
        ) from e


def normalize_order(raw: Mapping[str, Any], order_id: str | None = None) -> Order:
    """Map a raw order/service-request document onto ``Order``.

    Args:
        raw: Document as stored, with any of the known field-name variants
        order_id: Document id when it is not part of the document body

    Returns:
        Canonical order

    Raises:
        InvalidInputError: Unknown kind/status or malformed values
    """
    doc_id = order_id or _first(raw, "id", "order_id", "orderId")
    fields: dict[str, Any] = {
        "id": str(doc_id) if doc_id is not None else "",
        "customer_id": _first(raw, "customer_id", "customerId", "user_id", "userId"),
        "kind": _parse_kind(_first(raw, "kind", "service_type", "serviceType", "type")),
        "status": _parse_status(_first(raw, "status")),
        "driver_id": _first(raw, "driver_id", "driverId"),
        "amount": _first(raw, "amount", "total", "price") or 0.0,
        "created_at": _parse_timestamp(_first(raw, "created_at", "createdAt")),
        "customer_location": _parse_location(raw),
        "address": _first(raw, "address", "location_address", "location.address"),
        "vehicle_type": _first(raw, "vehicle_type", "vehicleType", "details.vehicleType"),
        "issue_description": _first(
            raw, "issue_description", "issueDescription", "details.issue", "issue"
        ),
        "fuel_type": _first(raw, "fuel_type", "fuelType", "details.fuelType"),
        "quantity": _first(raw, "quantity", "details.quantity"),
    }

    try:
        return Order.model_validate(fields)
    except pydantic.ValidationError as e:
        raise InvalidInputError(
            f"Invalid order document {doc_id!r}",
            details={"errors": e.errors(include_url=False, include_context=False)},
        ) from e


def order_to_document(order: Order) -> dict[str, Any]:
    """Serialize an order in canonical snake_case form."""
    return order.model_dump(mode="json", exclude_none=True)
