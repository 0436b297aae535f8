from __future__ import annotations

import pytest

from opendata.bbl import borough_name, county_for, create_bbl, normalize_bbl


@pytest.mark.parametrize(
    "borough",
    ["1", "MN", "mn", "Manhattan", "MANHATTAN", " manhattan "],
)
def test_create_bbl_resolves_every_manhattan_spelling(borough: str) -> None:
    assert create_bbl(borough, "123", "45") == "1001230045"


def test_create_bbl_is_deterministic_and_ten_characters() -> None:
    first = create_bbl("Staten Island", "7", "1")
    second = create_bbl("Staten Island", "7", "1")

    assert first == second == "5000070001"
    assert len(first) == 10


def test_create_bbl_degrades_instead_of_raising() -> None:
    assert create_bbl(None, None, None) == "0000000000"
    assert create_bbl("", "12", "3") == "0000120003"
    # Unknown tokens pass through untouched
    assert create_bbl("9", "1", "1") == "9000010001"


def test_create_bbl_accepts_numeric_parts() -> None:
    assert create_bbl(3, 1234, 56) == "3012340056"


def test_normalize_bbl_strips_socrata_decimal_suffix() -> None:
    assert normalize_bbl("1001230045.00000000") == "1001230045"
    assert normalize_bbl("1001230045") == "1001230045"
    assert normalize_bbl(" 301234056 ") == "0301234056"


def test_normalize_bbl_rejects_garbage() -> None:
    assert normalize_bbl(None) is None
    assert normalize_bbl("") is None
    assert normalize_bbl("not-a-bbl") is None


def test_borough_and_county_lookups() -> None:
    assert borough_name("3") == "Brooklyn"
    assert borough_name("qn") == "Queens"
    assert borough_name("7") is None
    assert county_for("Brooklyn") == "Kings"
    assert county_for("Unknown") == "New York"
