"""
InventoryTransaction: immutable audit row for one stock movement.

Rows are inserted only by the ledger, in the same database transaction as the
Inventory update they describe, and are never updated or deleted afterwards.
"""
import enum

from sqlalchemy import (
    Column, Integer, String, Text, ForeignKey, DateTime, Enum,
    CheckConstraint, UniqueConstraint, Index,
)
from sqlalchemy.orm import relationship
from stockroom.db.base import Base


class TransactionType(str, enum.Enum):
    SALE = "SALE"
    PURCHASE = "PURCHASE"
    ADJUSTMENT = "ADJUSTMENT"
    RETURN = "RETURN"
    TRANSFER_IN = "TRANSFER_IN"
    TRANSFER_OUT = "TRANSFER_OUT"
    INITIAL = "INITIAL"


class InventoryTransaction(Base):
    __tablename__ = "inventory_transactions"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    type = Column(Enum(TransactionType, name="inventory_transaction_type", native_enum=False, length=32), nullable=False)
    delta = Column(Integer, nullable=False)
    resulting_balance = Column(Integer, nullable=False)
    # 1-based position in the product's log; total order of applied movements
    sequence = Column(Integer, nullable=False)
    actor = Column(String(255), nullable=False)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    product = relationship("Product", backref="transactions")

    __table_args__ = (
        UniqueConstraint("product_id", "sequence", name="uq_inventory_transactions_product_sequence"),
        CheckConstraint("delta != 0", name="ck_inventory_transactions_delta_non_zero"),
        CheckConstraint("resulting_balance >= 0", name="ck_inventory_transactions_balance_non_negative"),
        Index("ix_inventory_transactions_history", "organization_id", "product_id", "created_at"),
    )

    def __repr__(self):
        return (
            f"<InventoryTransaction {self.id} product={self.product_id} "
            f"{self.type.value if self.type else None} {self.delta:+d} -> {self.resulting_balance}>"
        )
