"""GGA / RMC decoding into a FixRecord.

Fields are addressed by position, so empty fields must survive splitting.
Each parser updates only the fields its sentence carries; the rest of the
record keeps its previous values.
"""

import enum
import logging

from tracksense.coordinates import decode
from tracksense.fix_state import FixRecord

logger = logging.getLogger(__name__)

KNOTS_TO_MPS = 0.514

GGA_MIN_FIELDS = 10
RMC_MIN_FIELDS = 8


class SentenceKind(enum.Enum):
    FIX_DATA = "GGA"
    MIN_NAV = "RMC"


def split_fields(frame: str) -> list[str]:
    return frame.split(",")


def sentence_kind(header: str) -> SentenceKind | None:
    for kind in SentenceKind:
        if kind.value in header:
            return kind
    return None


def _to_float(text: str, name: str) -> float:
    if not text:
        return 0.0
    try:
        return float(text)
    except ValueError:
        logger.warning("Invalid %s value %r, using 0", name, text)
        return 0.0


def _to_int(text: str, name: str) -> int:
    if not text:
        return 0
    try:
        return int(text)
    except ValueError:
        logger.warning("Invalid %s value %r, using 0", name, text)
        return 0


def parse_gga(fields: list[str], record: FixRecord) -> bool:
    if len(fields) < GGA_MIN_FIELDS:
        logger.debug("GGA with %d fields, need %d", len(fields), GGA_MIN_FIELDS)
        return False

    record.time_utc = fields[1]
    record.latitude_deg = decode(fields[2], fields[3])
    record.longitude_deg = decode(fields[4], fields[5])
    record.satellites_used = _to_int(fields[7], "satellites")
    record.hdop = _to_float(fields[8], "hdop")
    record.altitude_m = _to_float(fields[9], "altitude")
    return True


def parse_rmc(fields: list[str], record: FixRecord) -> bool:
    if len(fields) < RMC_MIN_FIELDS:
        logger.debug("RMC with %d fields, need %d", len(fields), RMC_MIN_FIELDS)
        return False

    record.time_utc = fields[1]
    record.latitude_deg = decode(fields[3], fields[4])
    record.longitude_deg = decode(fields[5], fields[6])
    record.speed_mps = _to_float(fields[7], "speed") * KNOTS_TO_MPS
    return True


_PARSERS = {
    SentenceKind.FIX_DATA: parse_gga,
    SentenceKind.MIN_NAV: parse_rmc,
}


def parse_sentence(fields: list[str], record: FixRecord) -> bool:
    """Decode a split sentence into ``record``. Returns True on success."""
    if not fields:
        return False
    kind = sentence_kind(fields[0])
    if kind is None:
        logger.debug("Skipping unsupported sentence %r", fields[0])
        return False
    return _PARSERS[kind](fields, record)
