"""Ingress validation: raw request fields to a well-formed CropSpec."""

from typing import Any, Optional

from .exceptions import InputError
from .models import CropSpec

INVALID_DIMENSIONS = "Invalid crop dimensions"


def _parse_dimension(raw: Any) -> Optional[int]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str):
        text = raw.strip()
        if text[:1] in ("+", "-"):
            sign, digits = text[0], text[1:]
        else:
            sign, digits = "", text
        if digits.isascii() and digits.isdigit():
            return int(sign + digits)
    return None


def parse_crop_spec(raw_width: Any, raw_height: Any) -> CropSpec:
    """
    Parse and validate the two tile-dimension fields in one step.

    Accepts ints or decimal integer strings. Non-numeric, fractional and
    non-positive values raise InputError.
    """
    width = _parse_dimension(raw_width)
    height = _parse_dimension(raw_height)

    if width is None or height is None or width <= 0 or height <= 0:
        raise InputError(
            f"{INVALID_DIMENSIONS}: width={raw_width!r}, height={raw_height!r}"
        )
    return CropSpec(tile_width=width, tile_height=height)


def require_image(payload: Optional[bytes], max_bytes: int) -> bytes:
    """Check that an image payload is present and within the size bound."""
    if not payload:
        raise InputError("No image uploaded")
    if len(payload) > max_bytes:
        raise InputError(
            f"Image is too large: {len(payload)} bytes exceeds the {max_bytes} byte limit"
        )
    return bytes(payload)
