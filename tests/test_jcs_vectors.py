from __future__ import annotations

import json
from decimal import Decimal

import pytest

from agentguard.ledger.jcs import CanonicalizationError, canonical_bytes, loads, sha256_hex


VECTORS = [
    # simple object ordering
    ({"b": 1, "a": 2}, b'{"a":2,"b":1}', "d3626ac30a87e6f7a6428233b3c68299976865fa5508e4267c5415c76af7a772"),
    # unicode example (Angstrom sign U+212B) NFC-normalizes to U+00C5
    ({"\u212b": 1}, b'{"\xc3\x85":1}', "3511e6515fb12a08ba57db370f587800037cc69c6c255bac9e16fbcba6de497f"),
    # arrays
    ([3, 2, 1], b"[3,2,1]", "30c8681f9b840aceee56b737f3b126ae67ec4eb71d2881db831f86014fba016d"),
    # nested object/array
    ({"z": [1, {"a": "x"}]}, b'{"z":[1,{"a":"x"}]}', "c53c1456bf2048c7d5c42ef8e332d78b0b44f0e0267fd559e14b33539e36832b"),
    # decimals: fixed-point, no exponent, trailing zeros removed
    ({"n": Decimal("1.2300")}, b'{"n":1.23}', "c2f4a8099bdaf483ac3f465590b90ae2156f94d0d32c194bfbb06ca2289ad25f"),
    ({"n": Decimal("1E+2")}, b'{"n":100}', "b39022c4ed96525c42cd0e7ce55308533962a655f1c19d5dac2f03e9dd995b2c"),
]


def test_canonical_vectors() -> None:
    for value, expected_bytes, expected_sha in VECTORS:
        assert canonical_bytes(value) == expected_bytes
        assert sha256_hex(value) == expected_sha
        assert json.loads(expected_bytes) == json.loads(canonical_bytes(value))


def test_finite_floats_use_shortest_decimal_form() -> None:
    assert canonical_bytes({"n": 1.5}) == b'{"n":1.5}'
    assert canonical_bytes({"n": 0.1}) == b'{"n":0.1}'
    assert canonical_bytes({"n": 1e21}) == b'{"n":1000000000000000000000}'
    assert canonical_bytes({"n": -0.0}) == b'{"n":0}'


@pytest.mark.parametrize("value", [float("nan"), float("inf"), Decimal("NaN"), Decimal("-Infinity")])
def test_rejects_non_finite_numbers(value: object) -> None:
    with pytest.raises(CanonicalizationError):
        canonical_bytes({"n": value})


def test_rejects_duplicate_keys_after_nfc() -> None:
    # U+212B NFC-normalizes to U+00C5, so these collide.
    with pytest.raises(CanonicalizationError, match="duplicate key"):
        canonical_bytes({"\u212b": 1, "\u00c5": 2})


def test_rejects_non_string_keys_and_unknown_types() -> None:
    with pytest.raises(CanonicalizationError):
        canonical_bytes({1: "a"})
    with pytest.raises(CanonicalizationError):
        canonical_bytes({"a": object()})


def test_loads_recanonicalizes_byte_identically() -> None:
    text = canonical_bytes({"amount": Decimal("12.50"), "items": [1, "two", None, True]})
    assert canonical_bytes(loads(text.decode("utf-8"))) == text
    assert loads('{"n":1.10}') == {"n": Decimal("1.10")}
