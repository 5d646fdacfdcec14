import pytest

from printflow.services.pricing import (
    PrintingOptions,
    delivery_charge_for,
    estimate_print_duration_minutes,
    printing_cost,
    quote,
    service_option_fee,
    template_revenue_split,
    to_paise,
)


def test_black_and_white_single_sided_cost():
    assert printing_cost(PrintingOptions(page_count=4, copies=2)) == 40


def test_colour_double_sided_a3_cost():
    options = PrintingOptions(page_size="A3", color="color", sided="double", page_count=3)
    assert printing_cost(options) == 90


def test_mixed_colour_counts_distinct_in_range_pages():
    options = PrintingOptions(color="mixed", page_count=5, color_pages=(1, 3, 3, 9))
    # two colour pages at 10, three black and white pages at 5
    assert printing_cost(options) == 35


def test_service_option_only_applies_to_multi_page_jobs():
    assert service_option_fee(PrintingOptions(page_count=1, service_option="binding")) == 0
    assert service_option_fee(PrintingOptions(page_count=2, service_option="binding")) == 20
    assert service_option_fee(PrintingOptions(page_count=2, service_option="file")) == 10
    assert service_option_fee(PrintingOptions(page_count=2)) == 0


def test_paid_template_splits_revenue_and_adds_surcharge():
    breakdown = quote(PrintingOptions(page_count=1), template_price=50)

    assert breakdown.template_price == 50
    assert breakdown.total == 55
    assert breakdown.creator_share_amount == 40
    assert breakdown.platform_share_amount == 10


def test_free_template_has_no_split():
    breakdown = quote(PrintingOptions(page_count=2), template_price=0)

    assert breakdown.total == 10
    assert breakdown.creator_share_amount is None
    assert breakdown.platform_share_amount is None


def test_quote_includes_delivery_charge():
    breakdown = quote(PrintingOptions(page_count=2), delivery_charge=20)
    assert breakdown.total == 30


def test_template_revenue_split_rounds_to_paise():
    assert template_revenue_split(99.99, 20) == (79.99, 20.0)


@pytest.mark.parametrize(
    ("distance_km", "expected"),
    [(None, 0), (0, 10), (5, 10), (5.1, 20), (19.9, 40), (100, 50)],
)
def test_delivery_charge_bands(distance_km, expected):
    assert delivery_charge_for(distance_km) == expected


def test_to_paise():
    assert to_paise(120) == 12000
    assert to_paise(0.1 + 0.2) == 30


def test_estimate_print_duration_minutes():
    assert estimate_print_duration_minutes(10, 2, True) == 13
    assert estimate_print_duration_minutes(3, 1, False) == 2
