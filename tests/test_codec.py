"""JSON codec behavior."""

import pytest

from payrelay.relay import codec
from payrelay.relay.errors import MalformedPayload


def test_parse_handles_values_with_delimiters():
    """Commas, colons and nesting survive parsing."""

    record = codec.parse('{"orderId": "a,b:c", "meta": {"x": [1, 2]}, "ok": true}')

    assert record == {"orderId": "a,b:c", "meta": {"x": [1, 2]}, "ok": True}


def test_parse_accepts_utf8_bytes():
    assert codec.parse('{"name": "결제"}'.encode("utf-8")) == {"name": "결제"}


@pytest.mark.parametrize(
    "text",
    [
        "",
        "   ",
        "null",
        "[]",
        "{",
        b"\xff\xfe",
        '{"amount": ' + "9" * 5001 + "}",
        '{"a": ' + "[" * 100000 + "]" * 100000 + "}",
    ],
)
def test_parse_rejects_non_objects(text):
    with pytest.raises(MalformedPayload):
        codec.parse(text)


@pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
def test_parse_rejects_non_finite_literals(literal):
    """JSON has no NaN or Infinity; they must not reach the backend body."""

    with pytest.raises(MalformedPayload):
        codec.parse('{"amount": ' + literal + "}")


def test_serialize_refuses_non_finite_numbers():
    with pytest.raises(ValueError):
        codec.serialize({"amount": float("nan")})


def test_serialize_keeps_insertion_order_and_types():
    text = codec.serialize({"b": "1", "a": 2, "c": False, "d": None, "e": 'say "hi"'})

    assert text == '{"b":"1","a":2,"c":false,"d":null,"e":"say \\"hi\\""}'


def test_enriched_record_round_trip():
    record = {
        "userId": "u1",
        "creditAmount": "100",
        "amount": 5000,
        "paymentKey": "pk,1",
        "transactionId": "7b0d",
        "timestamp": 1700000000000,
        "paymentProcessor": "TossPayments",
        "extra": {"nested": ["x", 1.5]},
    }

    assert codec.parse(codec.serialize(record)) == record
