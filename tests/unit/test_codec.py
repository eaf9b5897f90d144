"""
Unit tests untuk value codecs.
"""

import math

import pytest

from zkatom.codec import JsonCodec, LiteralCodec
from zkatom.errors import DecodingError, EncodingError


@pytest.mark.parametrize("value", [
    0,
    -17,
    2 ** 80,
    3.25,
    True,
    "hello",
    "unicode é中",
    b"\x00\xffbytes",
    1 + 2j,
    [1, "two", [3.0]],
    (1,),
    (),
    {"foo": "bar", 1: (2, 3)},
    {1, 2, 3},
    set(),
    {"nested": {"list": [{"a": None}], "set": {"x", "y"}}},
])
def test_literal_round_trip(value):
    """decode(encode(v)) == v untuk semua supported types"""
    codec = LiteralCodec()
    assert codec.decode(codec.encode(value)) == value


def test_literal_is_deterministic():
    """Dict dan set yang equal menghasilkan bytes yang sama"""
    codec = LiteralCodec()
    assert codec.encode({"b": 2, "a": 1}) == codec.encode({"a": 1, "b": 2})
    assert codec.encode({"zeta", "alpha", "mid"}) == b"{'alpha', 'mid', 'zeta'}"


def test_literal_is_human_readable():
    codec = LiteralCodec()
    assert codec.encode({"foo": "bar"}) == b"{'foo': 'bar'}"
    assert codec.encode((1,)) == b"(1,)"


def test_none_is_empty_payload():
    codec = LiteralCodec()
    assert codec.encode(None) == b""
    assert codec.decode(b"") is None
    assert codec.decode(None) is None


def test_literal_rejects_unsupported_type():
    codec = LiteralCodec()
    value = {"obj": object()}

    with pytest.raises(EncodingError) as exc_info:
        codec.encode(value)

    assert exc_info.value.value is value


def test_literal_rejects_cyclic_structure():
    codec = LiteralCodec()
    value = [1]
    value.append(value)

    with pytest.raises(EncodingError):
        codec.encode(value)


def test_literal_rejects_non_finite_float():
    codec = LiteralCodec()
    with pytest.raises(EncodingError):
        codec.encode([math.nan])
    with pytest.raises(EncodingError):
        codec.encode(math.inf)


def test_literal_allows_shared_references():
    """Object yang muncul dua kali (tanpa cycle) tetap bisa di-encode"""
    codec = LiteralCodec()
    shared = [1, 2]
    assert codec.decode(codec.encode([shared, shared])) == [[1, 2], [1, 2]]


@pytest.mark.parametrize("payload", [b"{'unterminated", b"__import__('os')", b"\xff\xfe", b"foo bar"])
def test_literal_rejects_malformed_payload(payload):
    codec = LiteralCodec()

    with pytest.raises(DecodingError) as exc_info:
        codec.decode(payload)

    assert exc_info.value.payload == payload


def test_json_round_trip():
    codec = JsonCodec()
    value = {"b": [1, 2.5, None, True], "a": {"nested": "x"}}

    assert codec.encode(value) == b'{"a":{"nested":"x"},"b":[1,2.5,null,true]}'
    assert codec.decode(codec.encode(value)) == value


def test_json_errors():
    codec = JsonCodec()

    with pytest.raises(EncodingError):
        codec.encode({1, 2})
    with pytest.raises(EncodingError):
        codec.encode(math.nan)
    with pytest.raises(DecodingError):
        codec.decode(b"{not json")


@pytest.mark.parametrize("value", [{1: "a"}, (1, 2), {"k": (1,)}])
def test_json_rejects_values_that_change_shape(value):
    codec = JsonCodec()

    with pytest.raises(EncodingError) as exc_info:
        codec.encode(value)

    assert exc_info.value.value is value


def deeply_nested(depth):
    value = []
    for _ in range(depth):
        value = [value]
    return value


def test_literal_rejects_deeply_nested_value():
    value = deeply_nested(5000)

    with pytest.raises(EncodingError) as exc_info:
        LiteralCodec().encode(value)

    assert exc_info.value.value is value


def test_json_rejects_deeply_nested_value():
    with pytest.raises(EncodingError):
        JsonCodec().encode(deeply_nested(5000))
