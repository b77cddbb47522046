import pytest

from moneytracker.number_words import words_to_number


@pytest.mark.parametrize("text,expected", [
    ("two lakh fifty", 200050),
    ("five hundred", 500),
    ("one thousand two hundred", 1200),
    ("Twenty-five rupees only", 25),
    ("one crore", 10000000),
    ("three lakhs and ten", 300010),
])
def test_words_to_number(text, expected):
    assert words_to_number(text) == expected


def test_empty_and_unknown_words():
    assert words_to_number("") is None
    assert words_to_number(None) is None
    assert words_to_number("paid via upi") is None


def test_zero_is_treated_as_missing():
    assert words_to_number("zero rupees only") is None
