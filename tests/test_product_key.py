import random

import pytest

from winkey.product_key import (
    FLAG_INDEX,
    KEY_ALPHABET,
    MARKER,
    InvalidRecordError,
    decode,
    decode_record,
    format_key,
    is_extended,
    patch_flag,
)


def test_alphabet_has_24_distinct_symbols():
    assert len(KEY_ALPHABET) == 24
    assert len(set(KEY_ALPHABET)) == 24
    assert MARKER not in KEY_ALPHABET


@pytest.mark.parametrize("flag,expected", [
    (0x00, 0), (0x05, 0), (0x06, 1), (0x08, 1), (0x0B, 1),
    (0x0C, 0), (0x0E, 0), (0x12, 1), (0xFF, 0),
])
def test_is_extended(flag, expected):
    assert is_extended(flag) == expected


def test_patch_flag_clears_bit_3():
    assert patch_flag(0xFF, 0) == 0xF7
    assert patch_flag(0xFF, 1) == 0xF7
    assert patch_flag(0x08, 1) == 0x00


def test_patch_flag_sets_bit_2_only_for_second_bit():
    assert patch_flag(0x08, 2) == 0x04
    assert patch_flag(0x00, 3) == 0x04
    assert patch_flag(0x00, 1) == 0x00


def test_zero_legacy_record_is_returned_raw(make_record):
    result = decode_record(make_record(flag=0x00))
    assert result.digits == "B" * 25
    assert not result.extended
    assert result.last_remainder == 0
    # 25 symbols never reach the dash-grouping branch
    assert decode(make_record(flag=0x00)) == "B" * 25
    assert "-" not in result.text
    assert not result.formatted


def test_low_byte_becomes_last_symbol(make_record):
    result = decode_record(make_record(window=[5], flag=0x00))
    assert result.digits == "B" * 24 + "H"


def test_extended_with_zero_remainder_prepends_marker(make_record):
    result = decode_record(make_record(flag=0x08))
    assert result.extended
    assert result.last_remainder == 0
    assert result.digits == "N" + "B" * 25
    # grouping skips slot 0, so the leading marker is not shown
    assert result.text == "BBBBB-BBBBB-BBBBB-BBBBB-BBBBB"
    assert result.formatted


def test_extended_marker_follows_last_remainder(make_record):
    # 6 * 2**112 // 24**24 == 23
    result = decode_record(make_record(flag=0x06))
    assert result.extended
    assert result.last_remainder == 23
    assert len(result.digits) == 26
    assert result.digits.count(MARKER) == 1
    assert result.digits.index(MARKER) == 24
    assert result.digits[0] == KEY_ALPHABET[23]
    assert result.text == "-".join(result.digits[i:i + 5] for i in (1, 6, 11, 16, 21))


def test_marker_is_inserted_once_when_run_repeats(make_record):
    # 2 * 24**24 decodes to "D" followed by 24 "B"s; the run after slot 0
    # ("BB") repeats, but only one marker goes in, at 1 + last_remainder.
    window = (2 * 24 ** 24).to_bytes(15, "little")
    assert window[14] == 0
    result = decode_record(make_record(window=window, flag=window[14] | 0x08))
    assert result.extended
    assert result.last_remainder == 2
    assert result.digits == "DBBN" + "B" * 22
    assert result.digits.count(MARKER) == 1
    assert result.text == "BBNBB-BBBBB-BBBBB-BBBBB-BBBBB"


def test_flag_patch_is_independent_of_digits(make_record):
    # 0x06 and 0x0E differ only in bit 3: same window after the patch,
    # different layout classification.
    legacy = decode_record(make_record(flag=0x0E))
    extended = decode_record(make_record(flag=0x06))
    assert not legacy.extended
    assert extended.extended
    assert legacy.last_remainder == extended.last_remainder
    assert len(legacy.digits) == 25
    assert extended.digits.replace(MARKER, "") == legacy.digits

    plain = decode_record(make_record(flag=0x00))
    marked = decode_record(make_record(flag=0x08))
    assert marked.digits[1:] == plain.digits


def test_caller_buffer_is_not_mutated(make_record):
    record = bytearray(make_record(window=list(range(200, 215)), flag=0x08))
    before = bytes(record)
    decode(record)
    assert bytes(record) == before


def test_accepts_int_list_and_ignores_bytes_outside_window(make_record):
    window = [0x12, 0x34, 0x56, 0x78, 0x9A, 0xBC, 0xDE, 0xF0, 0x11, 0x22, 0x33, 0x44, 0x55, 0x66]
    base = make_record(window=window, flag=0x07)
    noisy = bytearray(make_record(window=window, flag=0x07, length=164, fill=0xAA))
    assert decode(list(base)) == decode(base)
    assert decode(noisy) == decode(base)


@pytest.mark.parametrize("record", [b"", bytes(66), list(range(40))])
def test_short_record_is_rejected(record):
    with pytest.raises(InvalidRecordError):
        decode(record)


def test_non_byte_input_is_rejected():
    with pytest.raises(InvalidRecordError):
        decode([300] * 67)
    with pytest.raises(InvalidRecordError):
        decode(None)
    with pytest.raises(InvalidRecordError):
        decode(100)
    with pytest.raises(InvalidRecordError):
        decode("B" * 67)


def test_invalid_record_error_is_value_error():
    assert issubclass(InvalidRecordError, ValueError)


def test_random_records_keep_shape():
    rng = random.Random(1234)
    allowed = set(KEY_ALPHABET)
    for _ in range(300):
        record = bytes(rng.randrange(256) for _ in range(67))
        result = decode_record(record)
        flag = record[FLAG_INDEX]

        assert result.extended == bool(is_extended(flag))
        assert 0 <= result.last_remainder < 24
        if result.extended:
            assert len(result.digits) == 26
            assert result.digits.count(MARKER) == 1
            expected_pos = 0 if result.last_remainder == 0 else 1 + result.last_remainder
            assert result.digits.index(MARKER) == expected_pos
            assert len(result.text) == 29
            assert result.text.count("-") == 4
        else:
            assert len(result.digits) == 25
            assert MARKER not in result.digits
            assert result.text == result.digits
        assert set(result.digits.replace(MARKER, "")) <= allowed
        assert set(result.text) <= allowed | {MARKER, "-"}


def test_decode_is_deterministic(make_record):
    record = make_record(window=[9, 8, 7, 6, 5, 4, 3, 2, 1], flag=0x0C)
    assert decode(record) == decode(record) == decode(bytearray(record))


def test_format_key_groups_26_symbols_skipping_first():
    assert format_key("0ABCDEFGHIJKLMNOPQRSTUVWXY") == "ABCDE-FGHIJ-KLMNO-PQRST-UVWXY"


@pytest.mark.parametrize("digits", ["", "BCD", "B" * 25, "B" * 27])
def test_format_key_leaves_other_lengths_raw(digits):
    assert format_key(digits) == digits
