import pytest

from simplekernel.strings import atoi, itoa, utoa


@pytest.mark.parametrize("value", [0, 1, 7, 10, 99, 12345, -1, -42, -98765])
def test_itoa_decimal_matches_str(value):
    assert itoa(value, 10) == str(value)


@pytest.mark.parametrize("value", [0, 1, 15, 16, 255, 4096, 0xDEADBEEF])
def test_itoa_hex_matches_format(value):
    assert itoa(value, 16) == format(value, "x")


@pytest.mark.parametrize("base", [2, 8, 10, 16, 36])
@pytest.mark.parametrize("value", [0, 1, 35, 36, 1000, 65535])
def test_itoa_round_trips_through_int(value, base):
    assert int(itoa(value, base), base) == value


def test_itoa_negative_hex_is_twos_complement():
    assert itoa(-1, 16) == "ffffffff"
    assert itoa(-1, 16) == utoa(-1, 16)


@pytest.mark.parametrize("value", [0, 3, 255, 0xDEADBEEF])
def test_utoa_binary_matches_format(value):
    assert utoa(value, 2) == format(value, "b")


def test_utoa_has_no_sign():
    assert not utoa(-5, 10).startswith("-")
    assert int(utoa(-5, 10)) + 5 == 2**32


@pytest.mark.parametrize("base", [0, 1, 37])
def test_invalid_base_rejected(base):
    with pytest.raises(ValueError):
        itoa(5, base)
    with pytest.raises(ValueError):
        utoa(5, base)


@pytest.mark.parametrize("value", [0, 5, 12, 300, -7, -1234])
def test_atoi_round_trip(value):
    assert atoi(itoa(value, 10)) == value


def test_atoi_empty_is_zero():
    assert atoi("") == 0


@pytest.mark.parametrize("text", ["abc", "12a", "-", "1-2", " 3"])
def test_atoi_rejects_non_digits(text):
    with pytest.raises(ValueError):
        atoi(text)