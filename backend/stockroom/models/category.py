from sqlalchemy import Column, Integer, String, Text, ForeignKey, Index, func
from sqlalchemy.orm import relationship
from stockroom.db.base import Base


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    organization = relationship("Organization", backref="categories")

    __table_args__ = (
        Index("uq_categories_org_name_ci", organization_id, func.lower(name), unique=True),
    )
