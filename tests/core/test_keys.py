"""Tests for the tick key codec."""

from datetime import UTC, datetime, timedelta, timezone

import pytest
from hypothesis import given
from hypothesis import strategies as st

from tablepurger.contracts import MalformedKeyError
from tablepurger.core.keys import (
    KEY_WIDTH,
    TickKeyCodec,
    cutoff_key,
    decode_key,
    from_ticks,
    ticks_key,
    to_ticks,
)

utc_datetimes = st.datetimes(
    min_value=datetime(1, 1, 1),
    max_value=datetime(9999, 12, 31, 23, 59, 59, 999999),
    timezones=st.just(UTC),
)
prefixes = st.text(alphabet="abcdefghijklmnopqrstuvwxyz_-", max_size=8)


class TestTicks:
    """.NET tick conversions."""

    def test_known_value(self) -> None:
        # DateTime(2024, 1, 1).Ticks in .NET
        assert to_ticks(datetime(2024, 1, 1, tzinfo=UTC)) == 638396640000000000

    def test_epoch_is_zero(self) -> None:
        assert to_ticks(datetime(1, 1, 1, tzinfo=UTC)) == 0

    def test_naive_datetime_treated_as_utc(self) -> None:
        assert to_ticks(datetime(2024, 1, 1)) == to_ticks(datetime(2024, 1, 1, tzinfo=UTC))

    def test_aware_datetime_converted_to_utc(self) -> None:
        plus_two = timezone(timedelta(hours=2))
        local = datetime(2024, 1, 1, 2, 0, tzinfo=plus_two)
        assert to_ticks(local) == to_ticks(datetime(2024, 1, 1, tzinfo=UTC))

    def test_sub_microsecond_ticks_truncated(self) -> None:
        assert from_ticks(638396640000000007) == datetime(2024, 1, 1, tzinfo=UTC)


class TestEncode:
    """Key encoding."""

    def test_fixed_width_zero_padded(self) -> None:
        key = ticks_key(datetime(1, 1, 2, tzinfo=UTC))
        assert len(key) == KEY_WIDTH
        assert key == "0000000864000000000"

    def test_prefix_prepended(self) -> None:
        codec = TickKeyCodec(prefix="log_")
        assert codec.encode(datetime(2024, 1, 1, tzinfo=UTC)) == "log_0638396640000000000"

    def test_none_prefix_is_empty(self) -> None:
        assert TickKeyCodec(None).prefix == ""

    @given(t1=utc_datetimes, t2=utc_datetimes, prefix=prefixes)
    def test_lexical_order_matches_time_order(
        self, t1: datetime, t2: datetime, prefix: str
    ) -> None:
        codec = TickKeyCodec(prefix)
        if t1 < t2:
            assert codec.encode(t1) < codec.encode(t2)
        elif t1 > t2:
            assert codec.encode(t1) > codec.encode(t2)
        else:
            assert codec.encode(t1) == codec.encode(t2)

    @given(instant=utc_datetimes, prefix=prefixes)
    def test_round_trip(self, instant: datetime, prefix: str) -> None:
        codec = TickKeyCodec(prefix)
        assert codec.decode(codec.encode(instant)) == instant


class TestDecode:
    """Key decoding and malformed input."""

    def test_decode_without_prefix_present(self) -> None:
        # Prefix stripped only when present
        assert decode_key("0638396640000000000", "log_") == datetime(2024, 1, 1, tzinfo=UTC)

    def test_lower_bound_sentinel_decodes(self) -> None:
        assert decode_key("0") == datetime(1, 1, 1, tzinfo=UTC)

    @pytest.mark.parametrize(
        "key",
        [
            "",
            "log_",
            "abc",
            "-638396640000000000",
            "+638396640000000000",
            " 638396640000000000",
            "6383966400000000.0",
            "０６３８",  # full-width digits
            "99999999999999999999",
        ],
    )
    def test_malformed_keys_raise(self, key: str) -> None:
        with pytest.raises(MalformedKeyError) as exc_info:
            decode_key(key, "log_")
        assert exc_info.value.key == key

    @given(text=st.text(min_size=1).filter(lambda s: not (s.isascii() and s.isdigit())))
    def test_non_numeric_never_returns(self, text: str) -> None:
        with pytest.raises(MalformedKeyError):
            decode_key(text)


class TestCutoff:
    """Purge cutoff key."""

    def test_cutoff_is_as_of_minus_days(self) -> None:
        as_of = datetime(2024, 1, 31, tzinfo=UTC)
        assert cutoff_key(30, as_of) == ticks_key(datetime(2024, 1, 1, tzinfo=UTC))

    def test_cutoff_defaults_to_now(self) -> None:
        before = ticks_key(datetime.now(UTC) - timedelta(days=1))
        key = cutoff_key(1)
        after = ticks_key(datetime.now(UTC) - timedelta(days=1))
        assert before <= key <= after
