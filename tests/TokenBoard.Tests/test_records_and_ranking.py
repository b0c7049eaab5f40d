"""Tests for the record parse step, the filter/rank step and the dedup merge."""
from decimal import Decimal

import pytest
from pydantic import ValidationError

from pipeline.ranking import filter_and_rank, is_rankable, merge_by_address
from pipeline.records import parse_page, parse_token_record

from conftest import raw_token


def _records(*items):
    return [parse_token_record(i) for i in items]


def test_parse_accepts_newer_field_names():
    record = parse_token_record(
        {"address_hash": "0xabc", "holders_count": 7, "decimals": 6, "type": "ERC-20", "exchange_rate": 0.5}
    )

    assert record.address == "0xabc"
    assert record.holders == "7"
    assert record.decimals == "6"
    assert record.exchange_rate == Decimal("0.5")


def test_parse_rejects_blank_address():
    with pytest.raises(ValidationError):
        parse_token_record(raw_token("   "))


def test_parse_treats_blank_cap_as_missing():
    record = parse_token_record(raw_token("0xaaa", cap=""))

    assert record.circulating_market_cap is None
    assert not is_rankable(record)


def test_parse_page_keeps_cursor_and_drops_empty_cursor():
    page = parse_page({"items": [], "next_page_params": {}})
    assert page.next_page_params is None

    page = parse_page({"items": [], "next_page_params": {"items_count": 50}})
    assert page.next_page_params == {"items_count": 50}


def test_example_keeps_only_priced_capped_fungible_tokens():
    records = _records(
        raw_token("0xA", cap="1000", price="1"),
        raw_token("0xB", cap=None, price="1"),
        raw_token("0xC", cap="500", price="2", type_="ERC-721"),
    )

    ranked = filter_and_rank(records)

    assert [r.address for r in ranked] == ["0xA"]


def test_null_price_is_excluded():
    ranked = filter_and_rank(_records(raw_token("0xA", price=None)))

    assert ranked == []


def test_sorted_descending_by_market_cap():
    records = _records(
        raw_token("0x1", cap="10"),
        raw_token("0x2", cap="300.5"),
        raw_token("0x3", cap="300.25"),
        raw_token("0x4", cap="0"),
    )

    ranked = filter_and_rank(records)

    assert [r.address for r in ranked] == ["0x2", "0x3", "0x1", "0x4"]


def test_caps_beyond_float_precision_are_ordered_exactly():
    big = "123456789012345678901234567890"
    records = _records(
        raw_token("0xlow", cap=big + "0"),
        raw_token("0xhigh", cap=big + "1"),
    )

    ranked = filter_and_rank(records)

    assert [r.address for r in ranked] == ["0xhigh", "0xlow"]


def test_equal_caps_keep_upstream_order():
    records = _records(
        raw_token("0xfirst", cap="100"),
        raw_token("0xbig", cap="500"),
        raw_token("0xsecond", cap="100.0"),
        raw_token("0xthird", cap="1E+2"),
    )

    ranked = filter_and_rank(records)

    assert [r.address for r in ranked] == ["0xbig", "0xfirst", "0xsecond", "0xthird"]


def test_output_is_truncated_to_top_n():
    records = _records(*(raw_token(f"0x{i:03d}", cap=str(i)) for i in range(250)))

    ranked = filter_and_rank(records)

    assert len(ranked) == 100
    assert ranked[0].address == "0x249"
    assert ranked[-1].address == "0x150"
    caps = [r.circulating_market_cap for r in ranked]
    assert caps == sorted(caps, reverse=True)


def test_empty_input_yields_empty_output():
    assert filter_and_rank([]) == []
    assert filter_and_rank([], top_n=0) == []


def test_merge_by_address_last_write_wins():
    records = _records(
        raw_token("0xA", cap="1", symbol="OLD"),
        raw_token("0xB", cap="2"),
        raw_token("0xA", cap="3", symbol="NEW"),
    )

    merged = merge_by_address(records)

    assert [r.address for r in merged] == ["0xA", "0xB"]
    assert merged[0].symbol == "NEW"
    assert merged[0].circulating_market_cap == Decimal("3")


def test_duplicates_take_one_ranking_slot():
    records = _records(
        raw_token("0xA", cap="10"),
        raw_token("0xA", cap="20"),
        raw_token("0xB", cap="15"),
    )

    ranked = filter_and_rank(records, top_n=2)

    assert [(r.address, r.circulating_market_cap) for r in ranked] == [
        ("0xA", Decimal("20")),
        ("0xB", Decimal("15")),
    ]
