"""NMEA sentence delimiters and XOR checksum."""

import re

import pynmea2

from tracksense.errors import FramingError

START = "$"
CHECKSUM_SEP = "*"
TERMINATOR = "\r\n"

HEX_PAIR = re.compile(r"[0-9A-Fa-f]{2}")


def _ascii(body: str) -> str:
    # NMEA is 7-bit; anything else goes on the wire as "?"
    return body.encode("ascii", errors="replace").decode("ascii")


def checksum(body: str) -> int:
    """XOR of every byte between ``$`` and ``*``."""
    return pynmea2.NMEASentence.checksum(_ascii(body)) & 0xFF


def wrap(body: str) -> str:
    body = _ascii(body)
    return f"{START}{body}{CHECKSUM_SEP}{checksum(body):02X}{TERMINATOR}"


def unwrap(sentence: str) -> str:
    """Strip delimiters from a sentence and verify its checksum.

    Sentences without a ``*HH`` suffix are returned unverified. Raises
    FramingError when a checksum is present but wrong or not two hex digits.
    """
    text = sentence.strip()
    if text.startswith(START):
        text = text[1:]

    body, sep, received = text.rpartition(CHECKSUM_SEP)
    if not sep:
        return text

    if not HEX_PAIR.fullmatch(received):
        raise FramingError(f"Invalid checksum field {received!r}")
    if checksum(body) != int(received, 16):
        raise FramingError(
            f"Checksum mismatch: got {received!r}, computed {checksum(body):02X}"
        )
    return body
