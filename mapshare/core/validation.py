"""Input checks shared by the HTTP routes and the presence client.

Each helper returns a list of human readable problems; an empty list means
the input is valid. Callers decide whether that becomes a 400 or a
``ValidationError``.
"""
import math
from typing import Any, List

from mapshare.core.presence_config import (
    LOCATION_NAME_MAX,
    LOCATION_DESCRIPTION_MAX,
    DISPLAY_NAME_MAX,
)


def _is_number(value: Any) -> bool:
    # NaN and inf compare False against both bounds
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def validate_coordinates(latitude: Any, longitude: Any) -> List[str]:
    errors: List[str] = []

    if not _is_number(latitude) or latitude < -90 or latitude > 90:
        errors.append("Invalid latitude (must be between -90 and 90)")
    if not _is_number(longitude) or longitude < -180 or longitude > 180:
        errors.append("Invalid longitude (must be between -180 and 180)")

    return errors


def validate_location(
    name: Any,
    description: Any,
    latitude: Any,
    longitude: Any,
) -> List[str]:
    errors: List[str] = []

    if not isinstance(name, str) or len(name.strip()) < 1:
        errors.append("Name is required")
    elif len(name) > LOCATION_NAME_MAX:
        errors.append(f"Name must be less than {LOCATION_NAME_MAX} characters")

    if description is not None:
        if not isinstance(description, str):
            errors.append("Description must be a string")
        elif len(description) > LOCATION_DESCRIPTION_MAX:
            errors.append(
                f"Description must be less than {LOCATION_DESCRIPTION_MAX} characters"
            )

    errors.extend(validate_coordinates(latitude, longitude))
    return errors


def validate_display_name(display_name: Any) -> List[str]:
    if display_name is None:
        return []
    if not isinstance(display_name, str) or len(display_name) > DISPLAY_NAME_MAX:
        return [f"Display name must be a string under {DISPLAY_NAME_MAX} characters"]
    return []
