"""
Inventory ledger: the only writer of stock quantities.

Every quantity change is an InventoryTransaction appended in the same database
transaction as the Inventory update it describes. Either both rows commit or
neither does. Calls for the same product are serialized by a per-product lock
(plus SELECT ... FOR UPDATE and the Inventory version column for writers in
other processes); calls for different products never share a lock.
"""
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional, Tuple, Union

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from stockroom.core.audit import AuditLog
from stockroom.core.config import settings
from stockroom.core.exceptions import InsufficientStockError, InvalidOperationError, StorageError
from stockroom.models.inventory import Inventory
from stockroom.models.inventory_transaction import InventoryTransaction, TransactionType
from stockroom.models.product import Product
from stockroom.services.catalog_service import get_organization, get_product

logger = logging.getLogger(__name__)

# Required sign of the delta per transaction type; 0 means either sign
SIGN_CONVENTIONS: Dict[TransactionType, int] = {
    TransactionType.SALE: -1,
    TransactionType.TRANSFER_OUT: -1,
    TransactionType.PURCHASE: 1,
    TransactionType.RETURN: 1,
    TransactionType.TRANSFER_IN: 1,
    TransactionType.INITIAL: 1,
    TransactionType.ADJUSTMENT: 0,
}


class ProductLockRegistry:
    """Hands out one lock per (organization, product)."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Tuple[int, int], threading.Lock] = {}

    def lock_for(self, organization_id: int, product_id: int) -> threading.Lock:
        key = (organization_id, product_id)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def __len__(self):
        return len(self._locks)


product_locks = ProductLockRegistry()


def parse_transaction_type(value: Union[TransactionType, str]) -> TransactionType:
    if isinstance(value, TransactionType):
        return value
    if isinstance(value, str):
        try:
            return TransactionType(value.strip().upper())
        except ValueError:
            pass
    raise InvalidOperationError(f"Unknown transaction type: {value!r}")


def validate_delta(tx_type: TransactionType, delta) -> int:
    """Check that delta is a non-zero integer whose sign fits the transaction type."""
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise InvalidOperationError("Quantity delta must be an integer")
    if delta == 0:
        raise InvalidOperationError("Quantity delta cannot be zero")

    sign = SIGN_CONVENTIONS[tx_type]
    if sign < 0 and delta > 0:
        raise InvalidOperationError(f"{tx_type.value} requires a negative delta, got {delta:+d}")
    if sign > 0 and delta < 0:
        raise InvalidOperationError(f"{tx_type.value} requires a positive delta, got {delta:+d}")
    return delta


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands timezone-aware columns back naive
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _record_transaction(
    db: Session,
    organization_id: int,
    product_id: int,
    tx_type: TransactionType,
    delta: int,
    resulting_balance: int,
    sequence: int,
    actor: str,
    note: Optional[str],
    created_at: datetime,
) -> InventoryTransaction:
    txn = InventoryTransaction(
        organization_id=organization_id,
        product_id=product_id,
        type=tx_type,
        delta=delta,
        resulting_balance=resulting_balance,
        sequence=sequence,
        actor=actor,
        note=note,
        created_at=created_at,
    )
    db.add(txn)
    db.flush()
    return txn


def _apply_once(
    db: Session,
    organization_id: int,
    product_id: int,
    tx_type: TransactionType,
    delta: int,
    actor: str,
    note: Optional[str],
) -> InventoryTransaction:
    get_product(db, organization_id, product_id)

    inventory = (
        db.query(Inventory)
        .filter(Inventory.organization_id == organization_id, Inventory.product_id == product_id)
        .populate_existing()
        .with_for_update()
        .one_or_none()
    )
    if inventory is None:
        # Product created before inventory rows existed; first movement creates it
        inventory = Inventory(organization_id=organization_id, product_id=product_id, quantity=0)
        db.add(inventory)

    last = (
        db.query(InventoryTransaction.sequence, InventoryTransaction.created_at)
        .filter(InventoryTransaction.product_id == product_id)
        .order_by(InventoryTransaction.sequence.desc())
        .first()
    )
    last_sequence = last.sequence if last else 0
    if tx_type is TransactionType.INITIAL and last_sequence:
        raise InvalidOperationError("INITIAL can only seed a product with no stock history")

    current = inventory.quantity or 0
    new_balance = current + delta
    if new_balance < 0:
        AuditLog.log_stock_rejected(organization_id, product_id, tx_type.value, delta, actor, "insufficient_stock")
        raise InsufficientStockError(product_id, current, delta)

    # Timestamps never run backwards within a product's log
    created_at = _utcnow()
    if last is not None and _as_utc(last.created_at) > created_at:
        created_at = _as_utc(last.created_at)

    inventory.quantity = new_balance
    db.flush()  # UPDATE ... WHERE version = :expected

    txn = _record_transaction(
        db, organization_id, product_id, tx_type, delta, new_balance,
        last_sequence + 1, actor, note, created_at,
    )
    db.commit()
    return txn


def apply_transaction(
    db: Session,
    organization_id: int,
    product_id: int,
    transaction_type: Union[TransactionType, str],
    delta: int,
    actor: str,
    note: Optional[str] = None,
    locks: Optional[ProductLockRegistry] = None,
) -> InventoryTransaction:
    """
    Apply one stock movement and return its committed audit record.

    Raises:
        NotFoundError: product does not exist in this organization
        InvalidOperationError: unknown type, zero delta, sign/type mismatch
        InsufficientStockError: balance would drop below zero (nothing written)
        StorageError: commit failed; nothing written, safe to retry
    """
    tx_type = parse_transaction_type(transaction_type)
    validate_delta(tx_type, delta)
    if not actor or not str(actor).strip():
        raise InvalidOperationError("Actor is required")
    actor = str(actor).strip()

    # Resolve ownership before a lock exists for this key
    try:
        get_product(db, organization_id, product_id)
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError(original=e) from e

    registry = locks if locks is not None else product_locks
    attempts = max(1, settings.LEDGER_MAX_RETRIES)

    with registry.lock_for(organization_id, product_id):
        for attempt in range(1, attempts + 1):
            try:
                txn = _apply_once(db, organization_id, product_id, tx_type, delta, actor, note)
                break
            except (StaleDataError, IntegrityError) as e:
                # Another process won the race for this product; re-read and retry
                db.rollback()
                if attempt == attempts:
                    raise StorageError("Concurrent stock update; please retry", original=e) from e
                logger.warning(
                    f"Ledger conflict on product {product_id} (attempt {attempt}/{attempts}): {e.__class__.__name__}"
                )
            except SQLAlchemyError as e:
                db.rollback()
                raise StorageError(original=e) from e
            except Exception:
                db.rollback()
                raise

    # Committed: errors past this point propagate as-is, never as StorageError
    db.refresh(txn)
    AuditLog.log_stock_movement(
        organization_id, product_id, txn.id, tx_type.value, delta, txn.resulting_balance, actor,
    )
    return txn


def get_current_quantity(db: Session, organization_id: int, product_id: int) -> int:
    """Latest committed quantity; 0 for a product that never had stock."""
    get_product(db, organization_id, product_id)
    quantity = (
        db.query(Inventory.quantity)
        .filter(Inventory.organization_id == organization_id, Inventory.product_id == product_id)
        .scalar()
    )
    return quantity or 0


def list_stock_levels(db: Session, organization_id: int, below: Optional[int] = None) -> List[Tuple[Product, int]]:
    """(product, quantity) for every product of the organization, optionally only those under a threshold."""
    get_organization(db, organization_id)
    q = (
        db.query(Product, Inventory.quantity)
        .outerjoin(
            Inventory,
            (Inventory.product_id == Product.id) & (Inventory.organization_id == Product.organization_id),
        )
        .filter(Product.organization_id == organization_id)
    )
    rows = [(product, quantity or 0) for product, quantity in q.order_by(Product.name).all()]
    if below is not None:
        rows = [row for row in rows if row[1] < below]
    return rows


@dataclass(frozen=True)
class Pagination:
    offset: int = 0
    limit: Optional[int] = None
    page_size: int = field(default_factory=lambda: settings.LEDGER_HISTORY_PAGE_SIZE)

    def __post_init__(self):
        if self.offset < 0:
            raise InvalidOperationError("Offset cannot be negative")
        if self.limit is not None and self.limit < 0:
            raise InvalidOperationError("Limit cannot be negative")
        if self.page_size < 1:
            raise InvalidOperationError("Page size must be at least 1")


class TransactionHistory:
    """
    Newest-first view over one product's transactions.

    Nothing is read until iteration starts, rows are fetched one page at a
    time, and every new iteration starts over from the first record. Pages
    after the first continue below the last sequence seen, so rows appended
    while iterating never shift or repeat entries.
    """

    def __init__(self, db: Session, organization_id: int, product_id: int, pagination: Pagination):
        self.db = db
        self.organization_id = organization_id
        self.product_id = product_id
        self.pagination = pagination

    def _base_query(self):
        return self.db.query(InventoryTransaction).filter(
            InventoryTransaction.organization_id == self.organization_id,
            InventoryTransaction.product_id == self.product_id,
        )

    def __iter__(self) -> Iterator[InventoryTransaction]:
        remaining = self.pagination.limit
        page_size = self.pagination.page_size
        last_sequence = None

        while remaining is None or remaining > 0:
            size = page_size if remaining is None else min(page_size, remaining)
            q = self._base_query()
            if last_sequence is None:
                q = q.order_by(
                    InventoryTransaction.created_at.desc(), InventoryTransaction.sequence.desc()
                ).offset(self.pagination.offset)
            else:
                q = q.filter(InventoryTransaction.sequence < last_sequence).order_by(
                    InventoryTransaction.created_at.desc(), InventoryTransaction.sequence.desc()
                )
            rows = q.limit(size).all()
            yield from rows

            if len(rows) < size:
                return
            last_sequence = rows[-1].sequence
            if remaining is not None:
                remaining -= len(rows)

    def count(self) -> int:
        """Total transactions for the product, ignoring pagination."""
        return self._base_query().count()


def list_transaction_history(
    db: Session,
    organization_id: int,
    product_id: int,
    pagination: Optional[Pagination] = None,
) -> TransactionHistory:
    get_product(db, organization_id, product_id)
    return TransactionHistory(db, organization_id, product_id, pagination or Pagination())


@dataclass
class ReconciliationReport:
    organization_id: int
    product_id: int
    recorded_quantity: int
    replayed_quantity: int
    transaction_count: int
    first_divergent_sequence: Optional[int] = None

    @property
    def is_consistent(self) -> bool:
        return self.first_divergent_sequence is None and self.recorded_quantity == self.replayed_quantity


def reconcile(db: Session, organization_id: int, product_id: int) -> ReconciliationReport:
    """
    Replay every delta from zero in log order and compare with the Inventory row.

    A product diverges when the final sum differs from the stored quantity, or
    when any transaction's resulting balance (or sequence) disagrees with the
    replay at that point.
    """
    get_product(db, organization_id, product_id)
    recorded = (
        db.query(Inventory.quantity)
        .filter(Inventory.organization_id == organization_id, Inventory.product_id == product_id)
        .scalar()
    ) or 0

    running = 0
    count = 0
    first_divergent = None
    rows = (
        db.query(InventoryTransaction)
        .filter(
            InventoryTransaction.organization_id == organization_id,
            InventoryTransaction.product_id == product_id,
        )
        .order_by(InventoryTransaction.created_at.asc(), InventoryTransaction.sequence.asc())
        .yield_per(500)
    )
    for txn in rows:
        count += 1
        running += txn.delta
        if first_divergent is None and (
            txn.sequence != count or txn.resulting_balance != running or running < 0
        ):
            first_divergent = txn.sequence

    report = ReconciliationReport(
        organization_id=organization_id,
        product_id=product_id,
        recorded_quantity=recorded,
        replayed_quantity=running,
        transaction_count=count,
        first_divergent_sequence=first_divergent,
    )
    AuditLog.log_reconciliation(organization_id, product_id, recorded, running, report.is_consistent)
    return report


def reconcile_organization(db: Session, organization_id: int) -> List[ReconciliationReport]:
    get_organization(db, organization_id)
    product_ids = [
        pid for (pid,) in db.query(Product.id)
        .filter(Product.organization_id == organization_id)
        .order_by(Product.id)
        .all()
    ]
    return [reconcile(db, organization_id, pid) for pid in product_ids]
