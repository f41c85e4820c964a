import pytest

from opfaultproof.abi import (
    decode_address,
    decode_bytes32,
    decode_uint,
    encode_address,
    encode_bytes32,
    encode_call,
    encode_uint,
    function_selector,
    keccak256,
    parse_address,
)

ADDRESS = "0x4200000000000000000000000000000000000016"


def test_keccak256_of_empty_input():
    expected = bytes.fromhex(
        "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
    )
    assert keccak256(b"") == expected


def test_function_selector_known_value():
    assert function_selector("transfer(address,uint256)") == bytes.fromhex("a9059cbb")


def test_function_selector_ignores_spaces_and_uint_alias():
    assert function_selector("transfer(address, uint)") == function_selector(
        "transfer(address,uint256)"
    )


def test_encode_uint_is_one_word():
    word = encode_uint(7)
    assert len(word) == 32
    assert word[-1] == 7
    assert not any(word[:-1])


@pytest.mark.parametrize("value", [-1, 2**256])
def test_encode_uint_out_of_range(value):
    with pytest.raises(ValueError):
        encode_uint(value)


@pytest.mark.parametrize("value", [0, 1, 2**32 - 1, 2**64, 2**256 - 1])
def test_uint_round_trip(value):
    assert decode_uint(encode_uint(value), 0) == value


def test_address_round_trip_lowercases():
    mixed = "0xAbCdEf0123456789aBcDeF0123456789AbCdEf01"
    assert decode_address(encode_address(mixed), 0) == mixed.lower()


def test_encode_address_accepts_raw_bytes():
    raw = bytes(range(20))
    assert encode_address(raw)[12:] == raw


@pytest.mark.parametrize("text", ["0x1234", "0x" + "zz" * 20, "", "0x" + "00" * 21])
def test_parse_address_rejects_invalid(text):
    with pytest.raises(ValueError):
        parse_address(text)


def test_parse_address_adds_prefix():
    assert parse_address(ADDRESS[2:]) == ADDRESS


def test_bytes32_round_trip_from_hex():
    value = bytes(range(32))
    assert decode_bytes32(encode_bytes32("0x" + value.hex()), 0) == value


def test_encode_bytes32_wrong_length():
    with pytest.raises(ValueError):
        encode_bytes32(b"\x01" * 31)


def test_encode_call_layout():
    data = encode_call("claimCredit(address)", ADDRESS)
    assert len(data) == 36
    assert data[:4] == function_selector("claimCredit(address)")
    assert decode_address(data[4:], 0) == ADDRESS


def test_encode_call_without_arguments_is_selector():
    assert encode_call("gameCount()") == function_selector("gameCount()")


def test_encode_call_multiple_words_decode_back():
    data = encode_call("f(uint32,bytes32,bool)", 9, b"\xaa" * 32, True)
    body = data[4:]
    assert decode_uint(body, 0) == 9
    assert decode_bytes32(body, 1) == b"\xaa" * 32
    assert decode_uint(body, 2) == 1


def test_encode_call_wrong_argument_count():
    with pytest.raises(ValueError):
        encode_call("credit(address)")


def test_encode_call_value_too_wide_for_type():
    with pytest.raises(ValueError):
        encode_call("initBonds(uint32)", 2**32)


def test_encode_call_unsupported_type():
    with pytest.raises(ValueError):
        encode_call("create(string)", "x")


def test_decode_short_data_raises():
    with pytest.raises(ValueError):
        decode_uint(b"\x00" * 40, 1)


def test_decode_address_rejects_dirty_word():
    with pytest.raises(ValueError):
        decode_address(b"\x01" * 32, 0)