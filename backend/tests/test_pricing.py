"""Tests for the admin fee schedule, amount parsing and the order/intent models."""

import hashlib

import pytest
from pydantic import ValidationError

from ppob_chat.models.intents import IntentAction, ParsedIntent, parse_rupiah_amount
from ppob_chat.models.orders import PricedOrder
from ppob_chat.models.products import Product
from ppob_chat.services.pricing import calculate_admin_fee, format_rupiah
from ppob_chat.services.signature_service import (
    sign_payment_request,
    sign_reseller_request,
    verify_payment_callback,
)


@pytest.mark.parametrize("price,fee", [
    (0, 750),
    (10_000, 750),
    (10_001, 1_000),
    (25_000, 1_000),
    (25_001, 1_500),
    (50_000, 1_500),
    (50_001, 2_000),
    (100_000, 2_000),
    (100_001, 2_500),
    (1_000_000, 2_500),
])
def test_admin_fee_tier_boundaries(price, fee):
    assert calculate_admin_fee(price) == fee


def test_admin_fee_is_non_decreasing():
    fees = [calculate_admin_fee(p) for p in range(0, 150_001, 500)]
    assert fees == sorted(fees)


def test_admin_fee_rejects_negative_price():
    with pytest.raises(ValueError):
        calculate_admin_fee(-1)


def test_format_rupiah():
    assert format_rupiah(51_500) == "Rp 51.500"
    assert format_rupiah(750) == "Rp 750"
    assert format_rupiah(1_000_000) == "Rp 1.000.000"


@pytest.mark.parametrize("raw,expected", [
    (50000, 50000),
    ("50000", 50000),
    ("50rb", 50000),
    ("50 ribu", 50000),
    ("50k", 50000),
    ("Rp 50.000", 50000),
    ("1,5jt", 1_500_000),
    ("2 juta", 2_000_000),
    (None, None),
    ("", None),
])
def test_parse_rupiah_amount(raw, expected):
    assert parse_rupiah_amount(raw) == expected


@pytest.mark.parametrize("raw", ["lima puluh", "12.5", 12.5, True])
def test_parse_rupiah_amount_rejects_garbage(raw):
    with pytest.raises(ValueError):
        parse_rupiah_amount(raw)


def test_parsed_intent_normalizes_model_output():
    intent = ParsedIntent.model_validate({
        "intent": "BUY",
        "productType": "Pulsa",
        "provider": "Telkomsel",
        "amount": "50rb",
        "targetNumber": " 081234567890 ",
        "confidence": 0.95,
    })
    assert intent.action == IntentAction.BUY
    assert intent.category == "pulsa"
    assert intent.provider == "telkomsel"
    assert intent.amount == 50000
    assert intent.target_identifier == "081234567890"


def test_parsed_intent_unknown_action_and_confidence_clamp():
    intent = ParsedIntent.model_validate({"intent": "weather", "provider": "Mobile Legends", "confidence": 1.7})
    assert intent.action == IntentAction.UNRECOGNIZED
    assert intent.provider == "mobile_legends"
    assert intent.confidence == 1.0

    assert ParsedIntent.model_validate({"intent": "buy", "confidence": -3}).confidence == 0.0
    assert ParsedIntent.model_validate({"intent": "buy"}).confidence == 0.0


def test_parsed_intent_invalid_amount_is_validation_error():
    with pytest.raises(ValidationError):
        ParsedIntent.model_validate({"intent": "buy", "amount": "banyak", "confidence": 0.9})


def test_priced_order_total_invariant():
    product = Product(id="tsel-50k", category="pulsa", provider="telkomsel",
                      name="Pulsa Telkomsel 50.000", price=50_000, admin_fee=1_500)
    order = PricedOrder.from_product(product, "081234567890")
    assert order.total_amount == 51_500
    assert order.to_product_data()["totalAmount"] == 51_500

    with pytest.raises(ValidationError):
        PricedOrder(product=product, amount=50_000, admin_fee=1_500, total_amount=50_000)


def test_signatures():
    assert sign_reseller_request("user", "key", "pricelist") == hashlib.md5(b"userkeypricelist").hexdigest()
    assert sign_payment_request("k", "txn_1", "11", 51500, 10800) == \
        hashlib.md5(b"ktxn_11151500" + b"10800NewTransaction").hexdigest()

    good = hashlib.md5(b"ktxn_1CallbackStatus").hexdigest()
    assert verify_payment_callback("k", "txn_1", good)
    assert verify_payment_callback("k", "txn_1", good.upper())
    assert not verify_payment_callback("k", "txn_1", "deadbeef")
    assert not verify_payment_callback("k", "txn_1", None)
