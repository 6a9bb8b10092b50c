"""Tests for chat command dispatch."""

import asyncio
import json

from ppob_chat.models.transactions import TransactionCreateRequest
from ppob_chat.services.chat_service import UNRECOGNIZED_MESSAGE
from ppob_chat.services.order_resolution import AMBIGUOUS_MESSAGE, OUT_OF_DOMAIN_MESSAGE


COMMAND = "Beli pulsa Telkomsel 50rb untuk 081234567890"


def _chat(container, llm, reply, command=COMMAND):
    llm.replies = [json.dumps(reply)]
    return asyncio.run(container.chat.process(command))


def test_buy_returns_confirmation_and_product_data(container, llm):
    result = _chat(container, llm, {
        "intent": "buy", "productType": "pulsa", "provider": "telkomsel",
        "amount": "50rb", "targetNumber": "081234567890", "confidence": 0.95,
    })

    assert result.success
    assert "Rp 51.500" in result.message
    assert result.product_data == {
        "productId": "tsel-50k",
        "productName": "Pulsa Telkomsel 50.000",
        "productType": "pulsa",
        "provider": "telkomsel",
        "targetNumber": "081234567890",
        "amount": 50_000,
        "adminFee": 1_500,
        "totalAmount": 51_500,
        "aiCommand": COMMAND,
    }
    assert result.to_dict()["productData"]["totalAmount"] == 51_500


def test_buy_not_found_has_no_product_data(container, llm):
    result = _chat(container, llm, {
        "intent": "buy", "productType": "pulsa", "provider": "smartfren",
        "amount": 50000, "targetNumber": "0881", "confidence": 0.9,
    })
    assert not result.success
    assert "tidak ditemukan" in result.message
    assert "productData" not in result.to_dict()


def test_out_of_domain_and_ambiguous(container, llm):
    rejected = _chat(container, llm, {"intent": "unrecognized", "confidence": 0}, "Siapa presiden pertama?")
    assert not rejected.success
    assert rejected.message == OUT_OF_DOMAIN_MESSAGE

    vague = _chat(container, llm, {"intent": "buy", "productType": "pulsa", "confidence": 0.4}, "beli itu")
    assert not vague.success
    assert vague.message == AMBIGUOUS_MESSAGE


def test_unrecognized_action_with_confidence(container, llm):
    result = _chat(container, llm, {"intent": "refund", "confidence": 0.9}, "refund dong")
    assert not result.success
    assert result.message == UNRECOGNIZED_MESSAGE


def test_parse_failure_becomes_polite_message(container, llm):
    llm.error = RuntimeError("Bedrock API call timed out")
    result = asyncio.run(container.chat.process(COMMAND))
    assert not result.success
    assert result.message.startswith("Maaf, terjadi kesalahan sistem.")


def test_check_price_lists_ascending_prices(container, llm):
    result = _chat(container, llm, {
        "intent": "check_price", "productType": "pulsa", "provider": "telkomsel", "confidence": 0.9,
    }, "Cek harga pulsa Telkomsel")

    assert result.success
    assert "PULSA TELKOMSEL" in result.message
    assert result.message.index("**Rp 5.000**") < result.message.index("**Rp 100.000**")
    assert "**Rp 51.500**" in result.message
    assert "Indosat" not in result.message


def test_check_price_unknown_category(container, llm):
    result = _chat(container, llm, {"intent": "check_price", "productType": "asuransi", "confidence": 0.9})
    assert not result.success
    assert "tidak ditemukan" in result.message


def test_list_products_groups_by_provider(container, llm):
    result = _chat(container, llm, {"intent": "list_products", "productType": "pulsa", "confidence": 0.9},
                   "List produk pulsa")

    assert result.success
    assert "**TELKOMSEL** (5 produk)" in result.message
    assert "... dan 2 produk lainnya" in result.message
    assert "**INDOSAT** (4 produk)" in result.message
    assert "... dan 1 produk lainnya" in result.message


def test_check_status(container, llm, live_price_list):
    request = TransactionCreateRequest(
        product_id="pln-20k", product_type="token_listrik", product_name="Token PLN 20.000",
        target_number="12345678901", amount=20_000,
    )
    transaction = asyncio.run(container.transactions.create(request))

    found = _chat(container, llm, {"intent": "check_status", "transactionId": transaction.id, "confidence": 0.95})
    assert found.success
    assert transaction.id in found.message
    assert "Menunggu pembayaran" in found.message
    assert "Rp 21.000" in found.message

    missing = _chat(container, llm, {"intent": "check_status", "transactionId": "txn_0000", "confidence": 0.95})
    assert not missing.success

    no_id = _chat(container, llm, {"intent": "check_status", "confidence": 0.95})
    assert not no_id.success
    assert "ID transaksi diperlukan" in no_id.message
