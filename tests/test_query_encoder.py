# tests/test_query_encoder.py
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from httphelpers.utils.query_encoder import QueryBuilder, append_query, encode_query, format_round_trip


def test_encode_query_expands_lists_to_repeated_keys() -> None:
    assert encode_query({"id": 3, "tags": ["a", "b"]}) == "?id=3&tags=a&tags=b"


def test_encode_query_returns_empty_string_for_none_and_empty_input() -> None:
    assert encode_query(None) == ""
    assert encode_query({}) == ""
    assert encode_query([]) == ""
    assert encode_query({"tags": []}) == ""  # nothing left after expansion


def test_encode_query_formats_utc_datetime_in_round_trip_format() -> None:
    when = datetime(2024, 3, 1, 12, 30, 0, tzinfo=timezone.utc)
    assert encode_query({"when": when}) == "?when=2024-03-01T12:30:00.0000000Z"


def test_format_round_trip_offsets_and_naive_values() -> None:
    plus_two = datetime(2024, 3, 1, 12, 30, tzinfo=timezone(timedelta(hours=2)))
    minus_five_thirty = datetime(2024, 3, 1, 12, 30, tzinfo=timezone(-timedelta(hours=5, minutes=30)))
    naive = datetime(2024, 3, 1, 12, 30, 15, 123456)

    assert format_round_trip(plus_two) == "2024-03-01T12:30:00.0000000+02:00"
    assert format_round_trip(minus_five_thirty) == "2024-03-01T12:30:00.0000000-05:30"
    assert format_round_trip(naive) == "2024-03-01T12:30:15.1234560"


def test_encode_query_percent_encodes_values_but_keeps_colons() -> None:
    plus_two = datetime(2024, 3, 1, 12, 30, tzinfo=timezone(timedelta(hours=2)))

    assert encode_query({"q": "a b&c"}) == "?q=a%20b%26c"
    assert encode_query({"when": plus_two}) == "?when=2024-03-01T12:30:00.0000000%2B02:00"


def test_encode_query_renders_none_as_empty_value_and_dates_as_iso() -> None:
    assert encode_query({"missing": None, "day": date(2024, 1, 2)}) == "?missing=&day=2024-01-02"


def test_encode_query_accepts_pairs_and_preserves_order() -> None:
    assert encode_query([("b", 2), ("a", 1), ("b", 3)]) == "?b=2&a=1&b=3"


def test_query_builder_matches_mapping_output() -> None:
    built = QueryBuilder().add("id", 3).add("tags", ("a", "b")).build()
    assert built == "?id=3&tags=a&tags=b"
    assert encode_query(QueryBuilder().add("x", True)) == "?x=True"


def test_append_query_leaves_path_alone_without_params() -> None:
    assert append_query("items", None) == "items"
    assert append_query("items", {"page": 2}) == "items?page=2"
