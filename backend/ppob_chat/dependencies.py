"""
Service container and FastAPI dependencies.

All collaborators are built once per process and shared across requests.
Tests replace the container through app.dependency_overrides[get_container].
"""
import logging
from functools import cached_property
from typing import Any, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from .clients.digiflazz_client import DigiflazzClient
from .clients.paydisini_client import PaydisiniClient
from .config import settings
from .services.catalog_store import CatalogStore, InMemoryCatalogStore, SqlCatalogStore
from .services.catalog_sync import CatalogSynchronizer
from .services.chat_service import ChatService
from .services.intent_parser import IntentParser
from .services.message_composer import BedrockMessageComposer, MessageComposer
from .services.order_resolution import OrderResolver
from .services.stats_service import StatsService
from .services.transaction_service import TransactionLifecycleManager, TransactionRepository

logger = logging.getLogger(__name__)


class ServiceContainer:
    """
    Wires stores, clients and services together.

    Args:
        session_factory: Async session factory for the storefront database
        catalog: Catalog store backend
        reseller: Upstream reseller client
        gateway: Payment gateway client
        llm: Object exposing async invoke_claude (BedrockService)
        composer: Message composer; defaults to Bedrock with template fallback
        confidence_threshold: Overrides settings.intent_confidence_threshold
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        catalog: CatalogStore,
        reseller: DigiflazzClient,
        gateway: PaydisiniClient,
        llm: Any,
        composer: Optional[MessageComposer] = None,
        confidence_threshold: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.catalog = catalog
        self.reseller = reseller
        self.gateway = gateway
        self.llm = llm
        self.composer = composer or BedrockMessageComposer(llm)
        self.confidence_threshold = confidence_threshold

    @cached_property
    def intent_parser(self) -> IntentParser:
        return IntentParser(self.llm)

    @cached_property
    def resolver(self) -> OrderResolver:
        return OrderResolver(self.catalog, self.reseller, self.composer, self.confidence_threshold)

    @cached_property
    def repository(self) -> TransactionRepository:
        return TransactionRepository(self.session_factory)

    @cached_property
    def transactions(self) -> TransactionLifecycleManager:
        return TransactionLifecycleManager(self.repository, self.catalog, self.reseller, self.gateway)

    @cached_property
    def stats(self) -> StatsService:
        return StatsService(self.repository, self.session_factory)

    @cached_property
    def catalog_sync(self) -> CatalogSynchronizer:
        return CatalogSynchronizer(
            self.catalog,
            self.reseller,
            seed_products=None if settings.seed_default_products else [],
        )

    @cached_property
    def chat(self) -> ChatService:
        return ChatService(self.intent_parser, self.resolver, self.catalog, self.transactions, self.composer)

    async def aclose(self) -> None:
        await self.reseller.aclose()
        await self.gateway.aclose()


_container: Optional[ServiceContainer] = None


def build_default_container() -> ServiceContainer:
    """Container backed by the configured database, real clients and Bedrock."""
    from .db.init_db import AsyncSessionLocal
    from .services.bedrock_service import get_bedrock_service

    if settings.catalog_backend == "memory":
        catalog: CatalogStore = InMemoryCatalogStore()
    else:
        catalog = SqlCatalogStore(AsyncSessionLocal)

    return ServiceContainer(
        session_factory=AsyncSessionLocal,
        catalog=catalog,
        reseller=DigiflazzClient(),
        gateway=PaydisiniClient(),
        llm=get_bedrock_service(),
    )


def get_container() -> ServiceContainer:
    """FastAPI dependency returning the process-wide container."""
    global _container
    if _container is None:
        _container = build_default_container()
        logger.info(f"Service container built (catalog backend: {settings.catalog_backend})")
    return _container


def reset_container() -> None:
    global _container
    _container = None
