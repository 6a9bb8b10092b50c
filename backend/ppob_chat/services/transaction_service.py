"""
Transaction Service

Owns the transaction record and its state machine:

    pending -> paid (needs_review until the reseller accepts) -> success
    pending -> failed
    paid (fulfillment failed) -> paid + needs_review

Every status change goes through TransactionRepository.compare_and_set,
an UPDATE guarded by the expected current status. Concurrent or repeated
webhook deliveries therefore apply a transition at most once, and only the
delivery that wins pending -> paid places the reseller order.
"""
import logging
import uuid
from datetime import datetime
from typing import Any, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..clients.digiflazz_client import DigiflazzClient
from ..clients.paydisini_client import PaydisiniClient
from ..db.models import TransactionModel
from ..exceptions import (
    FulfillmentError,
    InvalidTransactionRequestError,
    PaymentGatewayError,
    TransactionNotFoundError,
)
from ..models.products import Product, RawUpstreamProduct
from ..models.transactions import (
    TERMINAL_STATUSES,
    Transaction,
    TransactionCreateRequest,
    TransactionStatus,
)
from .catalog_store import SEED_PRODUCT_IDS, CatalogStore
from .catalog_sync import to_product
from .pricing import calculate_admin_fee

logger = logging.getLogger(__name__)


# Price snapshot columns; written once at insert
IMMUTABLE_FIELDS = frozenset({"id", "amount", "admin_fee", "total_amount", "created_at"})

PAYMENT_SUCCESS = "success"
PAYMENT_TERMINAL_NEGATIVE = frozenset({"canceled", "cancelled", "expired"})


def _to_transaction(row: TransactionModel) -> Transaction:
    return Transaction(
        id=row.id,
        product_id=row.product_id,
        product_type=row.product_type,
        product_name=row.product_name,
        target_number=row.target_number,
        amount=row.amount,
        admin_fee=row.admin_fee,
        total_amount=row.total_amount,
        status=row.status,
        payment_url=row.payment_url,
        payment_ref=row.payment_ref,
        fulfillment_ref=row.fulfillment_ref,
        fulfillment_status=row.fulfillment_status,
        serial_number=row.serial_number,
        needs_review=row.needs_review,
        failure_reason=row.failure_reason,
        ai_command=row.ai_command,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


# ============================================================================
# Repository
# ============================================================================

class TransactionRepository:
    """SQLAlchemy-backed transaction storage."""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def insert(self, **values: Any) -> Transaction:
        now = datetime.utcnow()
        row = TransactionModel(created_at=now, updated_at=now, **values)
        async with self._session_factory() as db:
            db.add(row)
            await db.commit()
            await db.refresh(row)
            return _to_transaction(row)

    async def get(self, transaction_id: str) -> Optional[Transaction]:
        async with self._session_factory() as db:
            row = await db.get(TransactionModel, transaction_id)
            return _to_transaction(row) if row else None

    async def get_by_payment_ref(self, payment_ref: str) -> Optional[Transaction]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(TransactionModel).where(TransactionModel.payment_ref == payment_ref)
            )
            row = result.scalar_one_or_none()
            return _to_transaction(row) if row else None

    async def _list(self, stmt) -> List[Transaction]:
        async with self._session_factory() as db:
            result = await db.execute(stmt)
            return [_to_transaction(row) for row in result.scalars().all()]

    async def list_by_target(self, target_number: str) -> List[Transaction]:
        return await self._list(
            select(TransactionModel)
            .where(TransactionModel.target_number == target_number)
            .order_by(TransactionModel.created_at.desc())
        )

    async def list_recent(self, limit: int = 50) -> List[Transaction]:
        return await self._list(
            select(TransactionModel)
            .order_by(TransactionModel.created_at.desc())
            .limit(limit)
        )

    async def list_created_between(self, start: datetime, end: datetime) -> List[Transaction]:
        return await self._list(
            select(TransactionModel)
            .where(TransactionModel.created_at >= start, TransactionModel.created_at < end)
            .order_by(TransactionModel.created_at)
        )

    async def compare_and_set(
        self,
        transaction_id: str,
        expected_status: TransactionStatus,
        new_status: Optional[TransactionStatus] = None,
        expect_needs_review: Optional[bool] = None,
        **fields: Any
    ) -> bool:
        """
        Update a transaction only if it is still in expected_status.

        Args:
            transaction_id: Transaction to update
            expected_status: Status the row must currently have
            new_status: Status to move to (None keeps the current one)
            expect_needs_review: Additional guard on the review flag
            **fields: Other columns to set

        Returns:
            True if the row was updated, False if the guard did not match

        Raises:
            ValueError: If fields include price snapshot columns
        """
        forbidden = IMMUTABLE_FIELDS.intersection(fields)
        if forbidden:
            raise ValueError(f"Cannot modify immutable transaction fields: {sorted(forbidden)}")

        values = dict(fields)
        values["updated_at"] = datetime.utcnow()
        if new_status is not None:
            values["status"] = new_status.value

        stmt = update(TransactionModel).where(
            TransactionModel.id == transaction_id,
            TransactionModel.status == expected_status.value,
        )
        if expect_needs_review is not None:
            stmt = stmt.where(TransactionModel.needs_review == expect_needs_review)

        async with self._session_factory() as db:
            result = await db.execute(stmt.values(**values))
            await db.commit()

        applied = result.rowcount == 1
        if new_status is not None:
            logger.debug(
                f"Transition {transaction_id} {expected_status.value}->{new_status.value}: "
                f"{'applied' if applied else 'skipped'}"
            )
        return applied


# ============================================================================
# Lifecycle manager
# ============================================================================

class TransactionLifecycleManager:
    """
    Creates transactions, reacts to payment notifications and drives
    fulfillment. The only writer of transaction status.
    """

    def __init__(
        self,
        repository: TransactionRepository,
        catalog: CatalogStore,
        reseller: DigiflazzClient,
        gateway: PaydisiniClient,
    ):
        self.repository = repository
        self.catalog = catalog
        self.reseller = reseller
        self.gateway = gateway

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def _live_sku(self, product: Product) -> RawUpstreamProduct:
        """Map a seed product onto the reseller SKU that will be ordered for it."""
        raw = await self.reseller.find_sku(product.category, product.provider, product.price)
        # a closest-price match that costs more than the seed would be sold at a loss
        if raw is None or raw.price > product.price:
            raise InvalidTransactionRequestError(
                f"{product.name} is not available from the reseller right now",
                details={"product_id": product.id}
            )
        logger.info(f"Seed product {product.id} resolved to reseller SKU {raw.buyer_sku_code}")
        return raw

    async def _upstream_product(self, sku: str) -> Product:
        """Price a reseller SKU that is not in the local catalog from the live price list."""
        for raw in await self.reseller.fetch_catalog():
            if raw.buyer_sku_code == sku and raw.is_available:
                return to_product(raw)
        raise InvalidTransactionRequestError(
            f"Unknown or unavailable product: {sku}",
            details={"product_id": sku}
        )

    async def _price_checkout(self, request: TransactionCreateRequest) -> Tuple[int, int, str, str, Optional[str]]:
        """
        Server-side price for a checkout request.

        Returns:
            (amount, admin_fee, product_name, product_type, reseller SKU)

        Raises:
            InvalidTransactionRequestError: If the product id cannot be priced
        """
        if not request.product_id:
            # nothing to order automatically; flagged for review once paid
            amount = request.amount
            return amount, calculate_admin_fee(amount), request.product_name, request.product_type, None

        product = await self.catalog.get_by_id(request.product_id)
        if product is None:
            product = await self._upstream_product(request.product_id)
            sku = product.id
        elif product.id in SEED_PRODUCT_IDS:
            sku = (await self._live_sku(product)).buyer_sku_code
        else:
            sku = product.id

        if request.amount != product.price:
            logger.warning(
                f"Client amount {request.amount} differs from price {product.price} "
                f"for {product.id}; using server price"
            )
        return product.price, product.admin_fee, product.name, product.category, sku

    async def create(self, request: TransactionCreateRequest) -> Transaction:
        """
        Create a pending transaction and its hosted-checkout payment.

        Price and fee are re-derived: from the catalog when the product id
        is known there, from the reseller price list for upstream SKUs, and
        from the fee schedule only when no product id is given. Client-sent
        fee/total values are ignored.

        Returns:
            Pending transaction with payment_url and payment_ref set

        Raises:
            InvalidTransactionRequestError: If the product cannot be priced
                or has no live reseller SKU
            PaymentGatewayError: If no checkout could be created; the
                stored row is moved to failed
        """
        amount, admin_fee, product_name, product_type, sku = await self._price_checkout(request)

        total_amount = amount + admin_fee
        if request.total_amount is not None and request.total_amount != total_amount:
            logger.warning(
                f"Client total {request.total_amount} ignored; recomputed total is {total_amount}"
            )

        transaction_id = f"txn_{uuid.uuid4().hex[:16]}"
        transaction = await self.repository.insert(
            id=transaction_id,
            product_id=sku,
            product_type=product_type,
            product_name=product_name,
            target_number=request.target_number,
            amount=amount,
            admin_fee=admin_fee,
            total_amount=total_amount,
            status=TransactionStatus.PENDING.value,
            ai_command=request.ai_command,
        )

        try:
            payment = await self.gateway.create_payment(
                unique_code=transaction_id,
                amount=total_amount,
                note=f"Pembayaran {product_name} untuk {request.target_number}",
                service=request.payment_service,
            )
        except PaymentGatewayError as e:
            await self.repository.compare_and_set(
                transaction_id,
                TransactionStatus.PENDING,
                new_status=TransactionStatus.FAILED,
                failure_reason=f"Payment creation failed: {e.message}",
            )
            logger.error(f"Transaction {transaction_id} failed at payment creation: {e.message}")
            raise

        await self.repository.compare_and_set(
            transaction_id,
            TransactionStatus.PENDING,
            payment_url=payment.redirect_url,
            payment_ref=payment.gateway_reference,
        )

        logger.info(
            f"Created transaction: {transaction_id}, product={product_name}, "
            f"target={request.target_number}, total={total_amount}"
        )
        return await self.get(transaction.id)

    # ------------------------------------------------------------------
    # Payment notification
    # ------------------------------------------------------------------

    async def _find_by_reference(self, reference: str) -> Transaction:
        transaction = await self.repository.get_by_payment_ref(reference)
        if transaction is None:
            # unique_code sent to the gateway is the transaction id
            transaction = await self.repository.get(reference)
        if transaction is None:
            raise TransactionNotFoundError(
                f"No transaction found for payment reference: {reference}",
                details={"reference": reference}
            )
        return transaction

    async def handle_payment_notification(self, reference: str, status: str) -> Transaction:
        """
        Apply a gateway status to the matching transaction.

        "Success" moves pending -> paid and then attempts fulfillment;
        "Canceled"/"Expired" move pending -> failed; other statuses are
        ignored. Re-deliveries find the guard no longer matching and do
        nothing.

        Raises:
            TransactionNotFoundError: If no transaction matches the reference
        """
        transaction = await self._find_by_reference(reference)
        normalized = status.strip().lower()

        if normalized == PAYMENT_SUCCESS:
            # flagged until fulfillment succeeds or is accepted, so a crash
            # between here and the reseller call leaves a retryable row
            won = await self.repository.compare_and_set(
                transaction.id,
                TransactionStatus.PENDING,
                new_status=TransactionStatus.PAID,
                needs_review=True,
                failure_reason="Fulfillment not confirmed",
            )
            if not won:
                logger.info(f"Payment success for {transaction.id} already applied (status={transaction.status.value})")
                return await self.get(transaction.id)
            logger.info(f"Transaction {transaction.id} paid; starting fulfillment")
            return await self._fulfill(await self.get(transaction.id))

        if normalized in PAYMENT_TERMINAL_NEGATIVE:
            applied = await self.repository.compare_and_set(
                transaction.id,
                TransactionStatus.PENDING,
                new_status=TransactionStatus.FAILED,
                failure_reason=f"Payment {status}",
            )
            if applied:
                logger.info(f"Transaction {transaction.id} failed: payment {status}")
            return await self.get(transaction.id)

        logger.info(f"Ignoring payment status {status!r} for {transaction.id}")
        return transaction

    # ------------------------------------------------------------------
    # Fulfillment
    # ------------------------------------------------------------------

    async def _flag_for_review(self, transaction: Transaction, reason: str) -> Transaction:
        logger.error(
            f"Fulfillment needs manual review: transaction={transaction.id}, "
            f"target={transaction.target_number}, reason={reason}"
        )
        await self.repository.compare_and_set(
            transaction.id,
            TransactionStatus.PAID,
            needs_review=True,
            failure_reason=reason,
        )
        return await self.get(transaction.id)

    async def _fulfill(self, transaction: Transaction) -> Transaction:
        """
        Place the reseller order for a paid transaction.

        The transaction id is the reseller ref_id, so a retry can never
        produce a second order. Failures keep the transaction paid and
        flag it; money has already been collected.
        """
        if not transaction.product_id:
            return await self._flag_for_review(transaction, "No reseller SKU stored on transaction")

        try:
            result = await self.reseller.submit_fulfillment(
                transaction.product_id, transaction.target_number, transaction.id
            )
        except FulfillmentError as e:
            return await self._flag_for_review(transaction, e.message)

        if result.succeeded:
            await self.repository.compare_and_set(
                transaction.id,
                TransactionStatus.PAID,
                new_status=TransactionStatus.SUCCESS,
                fulfillment_ref=result.ref_id,
                fulfillment_status=result.status,
                serial_number=result.serial_number,
                needs_review=False,
                failure_reason=None,
            )
            logger.info(f"Transaction {transaction.id} fulfilled: ref={result.ref_id}, sn={result.serial_number}")
        else:
            await self.repository.compare_and_set(
                transaction.id,
                TransactionStatus.PAID,
                fulfillment_ref=result.ref_id,
                fulfillment_status=result.status,
                needs_review=False,
                failure_reason=None,
            )
            logger.info(f"Transaction {transaction.id} awaiting reseller: status={result.status}")

        return await self.get(transaction.id)

    async def retry_fulfillment(self, transaction_id: str) -> Transaction:
        """
        Re-submit the reseller order for a flagged transaction.

        Raises:
            TransactionNotFoundError: Unknown id
            InvalidTransactionRequestError: Not paid and flagged, or a retry
                is already in progress
        """
        transaction = await self.get(transaction_id)
        if transaction.status != TransactionStatus.PAID or not transaction.needs_review:
            raise InvalidTransactionRequestError(
                "Only paid transactions flagged for review can be retried",
                details={"transaction_id": transaction_id, "status": transaction.status.value}
            )

        claimed = await self.repository.compare_and_set(
            transaction_id,
            TransactionStatus.PAID,
            expect_needs_review=True,
            needs_review=False,
        )
        if not claimed:
            raise InvalidTransactionRequestError(
                "Transaction is already being retried",
                details={"transaction_id": transaction_id}
            )

        logger.info(f"Retrying fulfillment for {transaction_id}")
        return await self._fulfill(await self.get(transaction_id))

    async def reconcile(self, transaction_id: str) -> Transaction:
        """
        Poll the gateway or reseller for a transaction that is not final.

        pending: payment status is fetched and applied like a webhook.
        paid without a reseller ref: flagged so retry_fulfillment accepts it.
        paid with a reseller ref: order status is fetched; Sukses completes
        the transaction and Gagal flags it.
        """
        transaction = await self.get(transaction_id)
        if transaction.status in TERMINAL_STATUSES:
            return transaction

        if transaction.status == TransactionStatus.PENDING and transaction.payment_ref:
            payment = await self.gateway.check_payment_status(transaction.payment_ref)
            return await self.handle_payment_notification(transaction.payment_ref, payment.status)

        if transaction.status == TransactionStatus.PAID and not transaction.fulfillment_ref:
            if not transaction.needs_review:
                # an interrupted retry cleared the flag without reaching the reseller
                return await self._flag_for_review(transaction, "Fulfillment not confirmed")
            return transaction

        if transaction.status == TransactionStatus.PAID and transaction.fulfillment_ref:
            result = await self.reseller.check_fulfillment_status(transaction.fulfillment_ref)
            if result.succeeded:
                await self.repository.compare_and_set(
                    transaction_id,
                    TransactionStatus.PAID,
                    new_status=TransactionStatus.SUCCESS,
                    fulfillment_status=result.status,
                    serial_number=result.serial_number,
                    needs_review=False,
                    failure_reason=None,
                )
                return await self.get(transaction_id)
            if result.failed:
                return await self._flag_for_review(transaction, f"Reseller order failed: {result.message}")

        return transaction

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get(self, transaction_id: str) -> Transaction:
        """
        Raises:
            TransactionNotFoundError: If the id is unknown
        """
        transaction = await self.repository.get(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(
                f"No transaction found with ID: {transaction_id}",
                details={"transaction_id": transaction_id}
            )
        return transaction

    async def find(self, transaction_id: str) -> Optional[Transaction]:
        return await self.repository.get(transaction_id)

    async def list_by_target(self, target_number: str) -> List[Transaction]:
        return await self.repository.list_by_target(target_number)

    async def list_recent(self, limit: int = 50) -> List[Transaction]:
        return await self.repository.list_recent(limit)
