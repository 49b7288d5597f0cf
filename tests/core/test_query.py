"""Tests for range query construction."""

from datetime import UTC, datetime

from tablepurger.core.keys import ticks_key
from tablepurger.core.query import KEY_COLUMNS, RangeQueryBuilder, TableQuery


class TestRangeQueryBuilder:
    """Query shape."""

    def test_default_lower_bound_with_prefix(self) -> None:
        query = RangeQueryBuilder().build(None, "0638396640000000000", "log_")

        assert query.lower_bound == "log_0"
        assert query.upper_bound == "log_0638396640000000000"
        assert query.filter == (
            "PartitionKey ge 'log_0' and PartitionKey lt 'log_0638396640000000000'"
        )

    def test_selects_exactly_key_columns(self) -> None:
        query = RangeQueryBuilder().build(None, "1")
        assert query.select == ("PartitionKey", "RowKey")
        assert KEY_COLUMNS == query.select

    def test_explicit_lower_bound(self) -> None:
        query = RangeQueryBuilder().build("0600000000000000000", "0638396640000000000")
        assert query.lower_bound == "0600000000000000000"
        assert query.upper_bound == "0638396640000000000"

    def test_empty_lower_bound_defaults(self) -> None:
        assert RangeQueryBuilder().build("", "5").lower_bound == "0"

    def test_single_quotes_escaped(self) -> None:
        query = TableQuery(lower_bound="o'0", upper_bound="o'9")
        assert query.filter == "PartitionKey ge 'o''0' and PartitionKey lt 'o''9'"

    def test_for_retention_uses_cutoff(self) -> None:
        as_of = datetime(2024, 1, 31, tzinfo=UTC)
        query = RangeQueryBuilder().for_retention(30, "p", as_of)

        assert query.lower_bound == "p0"
        assert query.upper_bound == "p" + ticks_key(datetime(2024, 1, 1, tzinfo=UTC))

    def test_str_includes_projection(self) -> None:
        assert str(TableQuery("0", "1")).endswith("select PartitionKey,RowKey")
