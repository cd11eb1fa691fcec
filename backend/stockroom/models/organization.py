from sqlalchemy import Column, Integer, String, Text, DateTime, Index, func
from stockroom.db.base import Base


class Organization(Base):
    """Tenant root. Every other record is scoped beneath exactly one organization."""
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)  # immutable once created
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("uq_organizations_name_ci", func.lower(name), unique=True),
    )
