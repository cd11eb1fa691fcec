from sqlalchemy import Column, Integer, String, Text, ForeignKey, Numeric, DateTime, Index, func
from sqlalchemy.orm import relationship
from stockroom.db.base import Base


class Product(Base):
    """
    Catalog entry owned by one organization.

    Prices are bounds for the sales desk (min <= base <= max); stock lives in
    the Inventory row and is only ever changed through the ledger.
    """
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)
    name = Column(String(255), nullable=False)
    sku = Column(String(64), nullable=True)
    description = Column(Text, nullable=True)
    base_price = Column(Numeric(12, 2), nullable=True)
    min_price = Column(Numeric(12, 2), nullable=True)
    max_price = Column(Numeric(12, 2), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    organization = relationship("Organization", backref="products")
    category = relationship("Category", backref="products")

    __table_args__ = (
        Index("uq_products_org_name_ci", organization_id, func.lower(name), unique=True),
    )
