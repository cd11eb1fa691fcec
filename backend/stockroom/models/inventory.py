from sqlalchemy import Column, Integer, ForeignKey, DateTime, CheckConstraint, UniqueConstraint, func
from sqlalchemy.orm import relationship
from stockroom.db.base import Base


class Inventory(Base):
    """
    Current stock for one (organization, product) pair.

    This row is a cached projection of the transaction log: quantity always
    equals the sum of committed InventoryTransaction deltas for the product.
    Written only by services.ledger_service.apply_transaction.
    """
    __tablename__ = "inventory"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    # Bumped on every write; UPDATEs are guarded by it (optimistic concurrency)
    version = Column(Integer, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    product = relationship("Product", backref="inventory")

    __table_args__ = (
        UniqueConstraint("organization_id", "product_id", name="uq_inventory_org_product"),
        CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
    )
    __mapper_args__ = {"version_id_col": version}
