from moneytracker.amount_extractor import (
    AmountCandidate,
    amount_candidates,
    extract_amount,
    line_looks_like_time,
    pick_best,
)


def test_currency_amount_beats_long_digit_run():
    assert extract_amount("₹ 1,200\n98765432109") == 1200


def test_time_only_text_has_no_amount():
    assert extract_amount("10:30 am") is None


def test_rs_prefix_without_space():
    assert extract_amount("Rs.500 paid") == 500


def test_keyword_line_beats_bare_numbers():
    assert extract_amount("Amount 1500\nOrder 99999") == 1500


def test_amount_in_words():
    assert extract_amount("Five hundred rupees only") == 500


def test_ocr_glyphs_inside_number():
    assert extract_amount("₹ 1,2O0") == 1200


def test_space_separated_groups():
    assert extract_amount("₹ 1 20 000") == 120000


def test_small_bare_numbers_ignored():
    assert extract_amount("Balance 20") is None


def test_currency_on_time_line_still_counts():
    assert extract_amount("₹ 450 at 10:30 AM") == 450


def test_candidates_record_rule_and_weight():
    cands = amount_candidates("₹ 1,200")
    assert AmountCandidate(1200.0, 5, "currency") in cands
    assert AmountCandidate(1200.0, 2, "separated") in cands


def test_pick_best_prefers_weight_then_value():
    cands = [
        AmountCandidate(900.0, 2, "separated"),
        AmountCandidate(300.0, 4, "keyword"),
        AmountCandidate(700.0, 4, "keyword"),
    ]
    assert pick_best(cands) == 700.0
    assert pick_best([]) is None


def test_line_looks_like_time():
    assert line_looks_like_time("12 Jan, 10:45 PM")
    assert not line_looks_like_time("10:45")
