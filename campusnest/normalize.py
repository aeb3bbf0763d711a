"""Normalization of property documents into the canonical record.

Property documents arrive in two shapes. The older flat shape keeps everything
at the top level (``price``, ``bedrooms``, ``area``, ``exactLocation``,
``caretakerPhone``); the newer nested shape groups fields into ``price``,
``location``, ``specifications``, ``availability`` and ``premiumDetails``
sub-objects. Once a nested sub-object is present it is used as a whole; the
flat fields only fill in for sub-objects that are absent.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Union

from .models import (
    Availability,
    Caretaker,
    GpsCoordinates,
    Location,
    Measure,
    Premium,
    Price,
    PropertyRecord,
    Specifications,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_IMAGE = "/placeholder-property.jpg"
NOT_PROVIDED = "Not provided"
DEFAULT_AREA = "Unknown Area"
DEFAULT_AVAILABLE_FROM = "Available Now"
DEFAULT_PROPERTY_TYPE = "Apartment"

NESTED_SUBOBJECTS = ("location", "specifications", "availability", "premiumDetails")
AMENITY_CATEGORIES = ("essential", "security", "extras")

_MEASURE_PATTERN = re.compile(r"^\s*(?P<value>-?\d+(?:\.\d+)?)\s*(?P<unit>[^\d\s].*)?$")
_ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}")


@dataclass(frozen=True)
class LegacyShape:
    """Flat property document."""

    document: Mapping[str, Any]


@dataclass(frozen=True)
class NestedShape:
    """Property document carrying at least one nested sub-object."""

    document: Mapping[str, Any]


PropertyDocument = Union[LegacyShape, NestedShape]


def classify_document(document: Any) -> PropertyDocument:
    """Tag a raw document with the shape it was received in."""
    if not isinstance(document, Mapping):
        logger.debug("Ignoring non-mapping property document of type %s", type(document).__name__)
        return LegacyShape(document={})
    if isinstance(document.get("price"), Mapping):
        return NestedShape(document=document)
    if any(isinstance(document.get(key), Mapping) for key in NESTED_SUBOBJECTS):
        return NestedShape(document=document)
    return LegacyShape(document=document)


def normalize_property(document: Any) -> PropertyRecord:
    """Convert a property document of either shape into a PropertyRecord.

    Never raises; every field falls back to a defined default.
    """
    if isinstance(document, (LegacyShape, NestedShape)):
        shape = document
    else:
        shape = classify_document(document)
    doc = shape.document

    def nested(key: str) -> Optional[Mapping[str, Any]]:
        if not isinstance(shape, NestedShape):
            return None
        value = doc.get(key)
        return value if isinstance(value, Mapping) else None

    return PropertyRecord(
        property_id=_resolve_id(doc),
        title=_text(doc.get("title")),
        description=_text(doc.get("description")),
        price=_build_price(doc, nested("price")),
        location=_build_location(doc, nested("location")),
        specifications=_build_specifications(doc, nested("specifications")),
        availability=_build_availability(doc, nested("availability")),
        premium=_build_premium(doc, nested("premiumDetails")),
        amenities=tuple(normalize_amenities(doc.get("amenities"))),
        images=tuple(normalize_images(doc.get("images"))),
        is_featured=bool(doc.get("isFeatured") or doc.get("isPremium")),
        unlocked_hint=_unlocked_hint(doc),
    )


def normalize_amenities(value: Any) -> List[str]:
    """Return present amenity names, in order, from a list or a mapping."""
    if not value:
        return []
    if isinstance(value, Mapping):
        if any(isinstance(value.get(key), list) for key in AMENITY_CATEGORIES):
            names: List[str] = []
            for key in AMENITY_CATEGORIES:
                names.extend(_string_items(value.get(key) or []))
            return names
        return [str(name) for name, present in value.items() if present]
    if isinstance(value, (list, tuple)):
        return _string_items(value)
    return []


def normalize_images(value: Any) -> List[str]:
    """Return image URLs; falsy entries become the placeholder image."""
    if not isinstance(value, (list, tuple)):
        return []
    urls: List[str] = []
    for item in value:
        if isinstance(item, Mapping):
            url = item.get("url")
        else:
            url = item
        urls.append(str(url) if url else PLACEHOLDER_IMAGE)
    return urls


def resolve_identifier(value: Any) -> str | None:
    """Best-effort extraction of an id from a raw id or a populated document."""
    if isinstance(value, Mapping):
        value = value.get("_id") or value.get("id")
    if value is None or value == "":
        return None
    return str(value)


def _unlocked_hint(doc: Mapping[str, Any]) -> Optional[bool]:
    for key in ("unlocked", "isUnlocked"):
        if key in doc:
            return bool(doc[key])
    return None


def _resolve_id(doc: Mapping[str, Any]) -> str:
    for key in ("_id", "id"):
        identifier = resolve_identifier(doc.get(key))
        if identifier:
            return identifier
    return ""


def _build_price(doc: Mapping[str, Any], nested: Optional[Mapping[str, Any]]) -> Price:
    if nested is not None:
        return Price(
            amount=_safe_float(nested.get("amount")),
            period=_text(nested.get("period"), "month"),
            currency=_text(nested.get("currency"), "KES"),
            negotiable=bool(nested.get("negotiable")),
        )
    return Price(
        amount=_safe_float(doc.get("price")),
        period=_text(doc.get("pricePeriod"), "month"),
        currency=_text(doc.get("currency"), "KES"),
        negotiable=bool(doc.get("negotiable")),
    )


def _build_location(doc: Mapping[str, Any], nested: Optional[Mapping[str, Any]]) -> Location:
    if nested is not None:
        return Location(
            area=_text(nested.get("area"), DEFAULT_AREA),
            nearest_campus=_text(nested.get("nearestCampus")),
            distance_from_campus=_measure(nested.get("distanceFromCampus"), "km"),
        )
    return Location(
        area=_text(doc.get("area"), DEFAULT_AREA),
        nearest_campus=_text(doc.get("nearestCampus")),
        distance_from_campus=_measure(doc.get("distanceFromCampus"), "km"),
    )


def _build_specifications(
    doc: Mapping[str, Any], nested: Optional[Mapping[str, Any]]
) -> Specifications:
    source = nested if nested is not None else doc
    return Specifications(
        bedrooms=_safe_int(source.get("bedrooms")),
        bathrooms=_safe_int(source.get("bathrooms")),
        property_type=_text(source.get("propertyType"), DEFAULT_PROPERTY_TYPE),
        size=_measure(source.get("size"), "sqm"),
        furnished=_text(source.get("furnished")),
    )


def _build_availability(
    doc: Mapping[str, Any], nested: Optional[Mapping[str, Any]]
) -> Availability:
    if nested is not None:
        return Availability(
            vacancies=_safe_int(nested.get("vacancies")),
            available_from=_date_text(nested.get("availableFrom")),
            status=_text(nested.get("status"), "available"),
        )
    # top-level "status" is the moderation status, not availability
    return Availability(
        vacancies=_safe_int(doc.get("vacancies")),
        available_from=_date_text(doc.get("availableFrom")),
    )


def _build_premium(doc: Mapping[str, Any], nested: Optional[Mapping[str, Any]]) -> Premium:
    if nested is not None:
        caretaker = nested.get("caretaker")
        caretaker = caretaker if isinstance(caretaker, Mapping) else {}
        return Premium(
            exact_address=_text(nested.get("exactAddress"), NOT_PROVIDED),
            gps_coordinates=_gps(nested.get("gpsCoordinates")),
            caretaker=Caretaker(
                name=_text(caretaker.get("name"), NOT_PROVIDED),
                phone=_text(caretaker.get("phone"), NOT_PROVIDED),
                alternative_phone=_text(caretaker.get("alternativePhone")),
                whatsapp=_text(caretaker.get("whatsapp")),
                available_hours=_text(caretaker.get("availableHours")),
            ),
            landmarks=tuple(_string_items(nested.get("landmarks") or [])),
        )
    return Premium(
        exact_address=_text(doc.get("exactLocation"), NOT_PROVIDED),
        gps_coordinates=_gps(doc.get("gpsCoordinates")),
        caretaker=Caretaker(
            name=_text(doc.get("caretakerName"), NOT_PROVIDED),
            phone=_text(doc.get("caretakerPhone"), NOT_PROVIDED),
        ),
        landmarks=tuple(_string_items(doc.get("landmarks") or [])),
    )


def _gps(value: Any) -> GpsCoordinates:
    if not isinstance(value, Mapping):
        return GpsCoordinates()
    return GpsCoordinates(
        latitude=_optional_float(value.get("latitude")),
        longitude=_optional_float(value.get("longitude")),
    )


def _measure(value: Any, default_unit: str) -> Measure:
    if isinstance(value, Mapping):
        return Measure(
            value=_optional_float(value.get("value")),
            unit=_text(value.get("unit"), default_unit),
        )
    if isinstance(value, bool) or value is None:
        return Measure(unit=default_unit)
    if isinstance(value, (int, float)):
        return Measure(value=float(value), unit=default_unit)
    match = _MEASURE_PATTERN.match(str(value))
    if not match:
        return Measure(unit=default_unit)
    return Measure(
        value=float(match.group("value")),
        unit=(match.group("unit") or default_unit).strip(),
    )


def _date_text(value: Any) -> str:
    text = _text(value)
    if not text:
        return DEFAULT_AVAILABLE_FROM
    if _ISO_DATE_PATTERN.match(text):
        return text[:10]
    return text


def _string_items(items: Iterable[Any]) -> List[str]:
    if not isinstance(items, (list, tuple)):
        return []
    return [str(item) for item in items if item]


def _text(value: Any, default: str = "") -> str:
    if value is None or isinstance(value, (Mapping, list)):
        return default
    text = str(value).strip()
    return text or default


def _safe_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(float(value)) if value is not None else default
    except (TypeError, ValueError, OverflowError):
        return default


def _safe_float(value: Any, default: float = 0.0) -> float:
    result = _optional_float(value)
    return default if result is None else result


def _optional_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
