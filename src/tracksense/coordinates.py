"""Conversion between NMEA ``(D)DDMM.MMMM`` + hemisphere and decimal degrees."""

import logging
import math

logger = logging.getLogger(__name__)

NEGATIVE_HEMISPHERES = ("S", "W")


def decode(numeric_text: str, hemisphere: str) -> float:
    """Convert an NMEA coordinate field pair to signed decimal degrees.

    Empty input yields 0.0. Unparseable input also yields 0.0, with a
    warning, so a single bad field never stops the pipeline.
    """
    if not numeric_text:
        return 0.0
    try:
        raw = float(numeric_text)
    except ValueError:
        logger.warning("Invalid coordinate value %r, using 0", numeric_text)
        return 0.0
    if not math.isfinite(raw):
        logger.warning("Invalid coordinate value %r, using 0", numeric_text)
        return 0.0

    degrees = math.floor(raw / 100)
    minutes = raw - degrees * 100
    value = degrees + minutes / 60.0
    if hemisphere.strip().upper() in NEGATIVE_HEMISPHERES:
        value = -value
    return value


def encode(decimal_degrees: float, is_latitude: bool) -> tuple[str, str]:
    """Convert signed decimal degrees to an NMEA ``(text, hemisphere)`` pair.

    Latitude degrees are padded to two digits, longitude to three; minutes
    always carry four decimals (``DDMM.MMMM`` / ``DDDMM.MMMM``).
    """
    if is_latitude:
        hemisphere = "N" if decimal_degrees >= 0 else "S"
        width = 2
    else:
        hemisphere = "E" if decimal_degrees >= 0 else "W"
        width = 3

    value = abs(decimal_degrees)
    degrees = int(math.floor(value))
    minutes = round((value - degrees) * 60.0, 4)
    # 59.99996' rounds to 60.0000', which belongs to the next degree
    if minutes >= 60.0:
        degrees += 1
        minutes = 0.0

    return f"{degrees:0{width}d}{minutes:07.4f}", hemisphere
