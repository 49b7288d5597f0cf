# src/tablepurger/core/keys.py
"""Tick-based partition key codec.

Keys are the .NET tick count (100 ns intervals since 0001-01-01 UTC) of an
instant, zero-padded to 19 digits so that lexical order equals time order,
optionally preceded by a constant prefix:

    2024-01-01T00:00:00Z  ->  "0638396640000000000"
    with prefix "log_"    ->  "log_0638396640000000000"

Python datetimes have microsecond resolution, so decoding truncates any
sub-microsecond ticks.
"""

from datetime import UTC, datetime, timedelta

from tablepurger.contracts.errors import MalformedKeyError

KEY_WIDTH = 19
TICKS_PER_MICROSECOND = 10
TICKS_PER_SECOND = 10_000_000
TICKS_PER_DAY = 86_400 * TICKS_PER_SECOND

_TICKS_EPOCH = datetime(1, 1, 1, tzinfo=UTC)
_MAX_TICKS = (
    (datetime.max.replace(tzinfo=UTC) - _TICKS_EPOCH) // timedelta(microseconds=1)
) * TICKS_PER_MICROSECOND


def to_ticks(instant: datetime) -> int:
    """Convert an instant to .NET ticks.

    Naive datetimes are interpreted as UTC.
    """
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    delta = instant.astimezone(UTC) - _TICKS_EPOCH
    return (delta // timedelta(microseconds=1)) * TICKS_PER_MICROSECOND


def from_ticks(ticks: int) -> datetime:
    """Convert .NET ticks to an aware UTC datetime."""
    return _TICKS_EPOCH + timedelta(microseconds=ticks // TICKS_PER_MICROSECOND)


def ticks_key(instant: datetime) -> str:
    """Unprefixed, zero-padded key for an instant."""
    return f"{to_ticks(instant):0{KEY_WIDTH}d}"


def decode_key(key: str, prefix: str = "") -> datetime:
    """Parse a key back to the instant it encodes.

    Args:
        key: Key as stored, with or without the prefix
        prefix: Constant prefix to strip when present

    Returns:
        Aware UTC datetime

    Raises:
        MalformedKeyError: If the remainder is not a non-negative base-10
            integer within the datetime range
    """
    digits = key[len(prefix) :] if prefix and key.startswith(prefix) else key

    # str.isdigit() accepts non-ASCII digits and int() accepts signs and
    # whitespace; neither belongs in a lexically ordered key.
    if not digits:
        raise MalformedKeyError(key, "no digits after prefix")
    if not (digits.isascii() and digits.isdigit()):
        raise MalformedKeyError(key, "not a non-negative base-10 integer")

    ticks = int(digits)
    if ticks > _MAX_TICKS:
        raise MalformedKeyError(key, "tick count out of range")
    return from_ticks(ticks)


def cutoff_key(purge_older_than_days: int, as_of: datetime | None = None) -> str:
    """Unprefixed key for the purge cutoff (now minus the retention period)."""
    if as_of is None:
        as_of = datetime.now(UTC)
    return ticks_key(as_of - timedelta(days=purge_older_than_days))


class TickKeyCodec:
    """Encodes and decodes prefixed tick keys.

    Usage:
        codec = TickKeyCodec(prefix="log_")
        key = codec.encode(datetime(2024, 1, 1, tzinfo=UTC))
        assert codec.decode(key) == datetime(2024, 1, 1, tzinfo=UTC)
    """

    def __init__(self, prefix: str | None = None) -> None:
        self._prefix = prefix or ""

    @property
    def prefix(self) -> str:
        """Configured key prefix (empty string when unset)."""
        return self._prefix

    def encode(self, instant: datetime) -> str:
        """Prefix plus the 19-digit tick count of instant."""
        return f"{self._prefix}{ticks_key(instant)}"

    def decode(self, key: str) -> datetime:
        """Parse a (possibly prefixed) key, raising MalformedKeyError."""
        return decode_key(key, self._prefix)
