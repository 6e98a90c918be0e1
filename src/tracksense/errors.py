class TrackSenseError(Exception):
    """Base class for errors raised by tracksense components."""


# ── Serial line ───────────────────────────────────────────


class SerialOpenError(TrackSenseError):
    """The serial device could not be opened."""


class SerialConfigError(TrackSenseError):
    """The serial line settings were rejected."""


class SerialReadError(TrackSenseError):
    """A read on an open serial line failed."""


# ── Telemetry / protocol ──────────────────────────────────


class PublisherError(TrackSenseError):
    """The UDP endpoint could not be created or the destination resolved."""


class FramingError(TrackSenseError, ValueError):
    """A sentence's trailing checksum does not match its body."""


class SimulatorError(TrackSenseError):
    """The pseudo terminal for the receiver simulator could not be set up."""
