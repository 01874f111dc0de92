import pytest

from splitpay.features.checkout.services.shares import parse_minor_amount, split_by_percent, split_even
from splitpay.platform.errors import ValidationError


def test_split_by_percent_default_fee() -> None:
    assert split_by_percent(10000, 99, 1) == (9900, 100)


@pytest.mark.parametrize(
    "amount,merchant_pct,platform_pct",
    [(1, 50, 50), (3, 50, 50), (999, 97.5, 2.5), (10001, 33.3, 66.7), (7, 0, 100), (12345678901234567890, 99, 1)],
)
def test_split_by_percent_reconstructs_amount(amount: int, merchant_pct: float, platform_pct: float) -> None:
    merchant_share, platform_share = split_by_percent(amount, merchant_pct, platform_pct)

    assert merchant_share + platform_share == amount
    assert platform_share == amount - merchant_share
    assert merchant_share >= 0 and platform_share >= 0


def test_split_by_percent_rounds_half_up_and_platform_takes_remainder() -> None:
    assert split_by_percent(3, 50, 50) == (2, 1)


def test_split_by_percent_accepts_sums_that_round_to_100() -> None:
    assert split_by_percent(1000, 99.6, 0.6) == (996, 4)


@pytest.mark.parametrize("merchant_pct,platform_pct", [(90, 5), (60, 60), (-1, 101), (101, -1)])
def test_split_by_percent_rejects_bad_ratio(merchant_pct: float, platform_pct: float) -> None:
    with pytest.raises(ValidationError):
        split_by_percent(100, merchant_pct, platform_pct)


def test_split_even_three_payers() -> None:
    assert split_even(100, 3) == [34, 33, 33]


@pytest.mark.parametrize("total,parts", [(100, 3), (1, 1), (10, 4), (17, 17), (1000003, 7), (5, 2)])
def test_split_even_properties(total: int, parts: int) -> None:
    shares = split_even(total, parts)
    base = total // parts

    assert len(shares) == parts
    assert sum(shares) == total
    assert max(shares) - min(shares) <= 1
    assert shares.count(base + 1) == total % parts


def test_split_even_requires_parts() -> None:
    with pytest.raises(ValidationError):
        split_even(10, 0)


@pytest.mark.parametrize("value,expected", [(10000, 10000), ("250", 250), (42.0, 42), (" 7 ", 7)])
def test_parse_minor_amount_accepts_integers(value: object, expected: int) -> None:
    assert parse_minor_amount(value, "amountMinor") == expected


@pytest.mark.parametrize("value", [0, -5, 1.5, "1.5", "abc", None, True, float("nan"), "Infinity"])
def test_parse_minor_amount_rejects(value: object) -> None:
    with pytest.raises(ValidationError) as excinfo:
        parse_minor_amount(value, "amountMinor")
    assert "amountMinor" in excinfo.value.message
