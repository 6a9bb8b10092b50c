"""Shared fixtures: per-test SQLite database and fake upstream collaborators."""

import asyncio

import pytest
from sqlalchemy.pool import NullPool

from ppob_chat.db.init_db import build_engine, build_session_factory, initialize_database
from ppob_chat.clients.digiflazz_client import normalize_brand, normalize_category
from ppob_chat.dependencies import ServiceContainer
from ppob_chat.exceptions import FulfillmentError, PaymentGatewayError
from ppob_chat.models.gateway import FulfillmentResult, PaymentCreated, PaymentStatus
from ppob_chat.models.products import RawUpstreamProduct
from ppob_chat.services.catalog_store import DEFAULT_PRODUCTS, InMemoryCatalogStore
from ppob_chat.services.message_composer import TemplateMessageComposer
from ppob_chat.services.signature_service import verify_payment_callback


GATEWAY_KEY = "test-gateway-key"


def _upstream(sku, name, category, brand, price):
    return RawUpstreamProduct(
        buyer_sku_code=sku, product_name=name, category=category, brand=brand, price=price, status="available",
    )


# Reseller price list with real SKUs behind the seed denominations used in tests
UPSTREAM_PRICE_LIST = [
    _upstream("tsel25", "Telkomsel 25.000", "Pulsa", "TELKOMSEL", 24_950),
    _upstream("tsel50", "Telkomsel 50.000", "Pulsa", "TELKOMSEL", 49_850),
    _upstream("tsel100", "Telkomsel 100.000", "Pulsa", "TELKOMSEL", 98_900),
    _upstream("pln20", "PLN 20.000", "PLN", "PLN", 19_900),
]


class FakeLLM:
    """Stands in for BedrockService. Replies are consumed in order; the last one repeats."""

    def __init__(self, *replies, error=None):
        self.replies = list(replies) or ["{}"]
        self.error = error
        self.calls = []

    async def invoke_claude(self, messages, system_prompt=None, max_tokens=1024, temperature=0.0):
        self.calls.append({"messages": messages, "system_prompt": system_prompt})
        if self.error is not None:
            raise self.error
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        return {"content": [{"type": "text", "text": reply}]}


class FakeReseller:
    """Stands in for DigiflazzClient and records every order submission."""

    def __init__(self, catalog=None, sku=None):
        self.catalog = list(catalog or [])
        self.sku = sku
        self.fulfillment_status = "Sukses"
        self.fulfillment_error = None
        self.order_status = "Sukses"
        self.submissions = []
        self.status_checks = []

    async def fetch_catalog(self):
        return list(self.catalog)

    async def find_sku(self, category, provider, amount):
        if self.sku is not None:
            return self.sku
        # same-denomination row of the loaded price list
        for row in self.catalog:
            if (normalize_category(row.category) == category and normalize_brand(row.brand) == provider
                    and row.product_name.split()[-1] == f"{amount:,}".replace(",", ".")):
                return row
        return None

    async def submit_fulfillment(self, sku, customer_no, ref_id):
        self.submissions.append((sku, customer_no, ref_id))
        if self.fulfillment_error:
            raise FulfillmentError(self.fulfillment_error, details={"ref_id": ref_id})
        serial = "SN-0001" if self.fulfillment_status == "Sukses" else None
        return FulfillmentResult(ref_id=ref_id, status=self.fulfillment_status, serial_number=serial)

    async def check_fulfillment_status(self, ref_id):
        self.status_checks.append(ref_id)
        serial = "SN-0002" if self.order_status == "Sukses" else None
        return FulfillmentResult(ref_id=ref_id, status=self.order_status, message="status", serial_number=serial)

    async def aclose(self):
        pass


class FakeGateway:
    """Stands in for PaydisiniClient."""

    def __init__(self, reference=None):
        self.reference = reference
        self.fail = False
        self.payment_status = "Success"
        self.created = []

    async def create_payment(self, unique_code, amount, note, service=None, valid_time=None):
        self.created.append({"unique_code": unique_code, "amount": amount, "note": note})
        if self.fail:
            raise PaymentGatewayError("Saldo merchant tidak mencukupi")
        return PaymentCreated(
            redirect_url=f"https://pay.example.test/{unique_code}",
            gateway_reference=self.reference or unique_code,
        )

    async def check_payment_status(self, unique_code):
        return PaymentStatus(gateway_reference=unique_code, status=self.payment_status)

    def verify_callback_signature(self, unique_code, signature):
        return verify_payment_callback(GATEWAY_KEY, unique_code, signature)

    async def aclose(self):
        pass


@pytest.fixture
def session_factory(tmp_path):
    """Fresh SQLite file per test; NullPool so each asyncio.run gets its own connection."""
    engine = build_engine(str(tmp_path / "ppob_test.db"), poolclass=NullPool)
    asyncio.run(initialize_database(engine))
    yield build_session_factory(engine)
    asyncio.run(engine.dispose())


@pytest.fixture
def catalog():
    return InMemoryCatalogStore(DEFAULT_PRODUCTS)


@pytest.fixture
def reseller():
    return FakeReseller()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def container(session_factory, catalog, reseller, gateway, llm):
    return ServiceContainer(
        session_factory=session_factory,
        catalog=catalog,
        reseller=reseller,
        gateway=gateway,
        llm=llm,
        composer=TemplateMessageComposer(),
        confidence_threshold=0.8,
    )


@pytest.fixture
def live_price_list(reseller):
    """Load the reseller price list so seed products resolve to real SKUs at checkout."""
    reseller.catalog = list(UPSTREAM_PRICE_LIST)
    return reseller.catalog
