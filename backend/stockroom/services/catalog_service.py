"""Organizations, categories and products. The ledger asks this module who owns a product."""
import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from stockroom.core.exceptions import ConflictError, InvalidOperationError, NotFoundError, StorageError
from stockroom.models.category import Category
from stockroom.models.inventory import Inventory
from stockroom.models.organization import Organization
from stockroom.models.product import Product
from stockroom.models.user import User

logger = logging.getLogger(__name__)


def clean_name(name: str, field: str = "Name") -> str:
    """Collapse whitespace; names may not be blank."""
    cleaned = " ".join((name or "").split())
    if not cleaned:
        raise InvalidOperationError(f"{field} cannot be empty")
    if len(cleaned) > 255:
        raise InvalidOperationError(f"{field} must be at most 255 characters")
    return cleaned


def _to_price(value, field: str) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        raise InvalidOperationError(f"{field} must be a number")
    if price < 0:
        raise InvalidOperationError(f"{field} cannot be negative")
    return price


def validate_price_bounds(base_price, min_price, max_price) -> tuple:
    """Return (base, min, max) as Decimals; enforces min <= base <= max for the bounds given."""
    base = _to_price(base_price, "Base price")
    low = _to_price(min_price, "Minimum price")
    high = _to_price(max_price, "Maximum price")

    if low is not None and high is not None and low > high:
        raise InvalidOperationError("Minimum price cannot exceed maximum price")
    if base is not None and low is not None and base < low:
        raise InvalidOperationError("Base price cannot be below minimum price")
    if base is not None and high is not None and base > high:
        raise InvalidOperationError("Base price cannot exceed maximum price")
    return base, low, high


def _commit(db: Session, conflict_message: str):
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        # Lost a race against a concurrent insert of the same name
        raise ConflictError(conflict_message) from e
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError(original=e) from e


# ------------------------------------------------------------------------------
# Organizations
# ------------------------------------------------------------------------------

def get_organization(db: Session, organization_id: int) -> Organization:
    org = db.query(Organization).filter(Organization.id == organization_id).first()
    if not org:
        raise NotFoundError("Organization", organization_id)
    return org


def create_organization(
    db: Session,
    name: str,
    description: Optional[str] = None,
    owner: Optional[User] = None,
) -> Organization:
    """Create an organization; an owner given here joins it in the same commit."""
    name = clean_name(name, "Organization name")
    existing = db.query(Organization).filter(func.lower(Organization.name) == name.lower()).first()
    if existing:
        raise ConflictError(f"Organization '{name}' already exists")

    org = Organization(name=name, description=description)
    db.add(org)
    if owner is not None:
        owner.organization = org
    _commit(db, f"Organization '{name}' already exists")
    db.refresh(org)
    logger.info(f"Created organization {org.id} ({org.name})")
    return org


def update_organization_metadata(db: Session, organization_id: int, description: Optional[str]) -> Organization:
    """Only metadata may change; the name is fixed at creation."""
    org = get_organization(db, organization_id)
    org.description = description
    _commit(db, "Organization update conflicted")
    db.refresh(org)
    return org


# ------------------------------------------------------------------------------
# Categories
# ------------------------------------------------------------------------------

def get_category(db: Session, organization_id: int, category_id: int) -> Category:
    category = db.query(Category).filter(
        Category.id == category_id,
        Category.organization_id == organization_id,
    ).first()
    if not category:
        raise NotFoundError("Category", category_id)
    return category


def list_categories(db: Session, organization_id: int) -> list:
    return (
        db.query(Category)
        .filter(Category.organization_id == organization_id)
        .order_by(Category.name)
        .all()
    )


def create_category(db: Session, organization_id: int, name: str, description: Optional[str] = None) -> Category:
    get_organization(db, organization_id)
    name = clean_name(name, "Category name")
    existing = db.query(Category).filter(
        Category.organization_id == organization_id,
        func.lower(Category.name) == name.lower(),
    ).first()
    if existing:
        raise ConflictError(f"Category '{name}' already exists")

    category = Category(organization_id=organization_id, name=name, description=description)
    db.add(category)
    _commit(db, f"Category '{name}' already exists")
    db.refresh(category)
    return category


# ------------------------------------------------------------------------------
# Products
# ------------------------------------------------------------------------------

def get_product(db: Session, organization_id: int, product_id: int) -> Product:
    """
    Resolve a product within an organization.

    Foreign products raise the same NotFoundError as missing ones so callers
    cannot probe other tenants' ids.
    """
    product = db.query(Product).filter(
        Product.id == product_id,
        Product.organization_id == organization_id,
    ).first()
    if not product:
        raise NotFoundError("Product", product_id)
    return product


def list_products(db: Session, organization_id: int, search: Optional[str] = None) -> list:
    q = db.query(Product).filter(Product.organization_id == organization_id)
    if search:
        q = q.filter(Product.name.ilike(f"%{search}%"))
    return q.order_by(Product.name).all()


def create_product(
    db: Session,
    organization_id: int,
    name: str,
    category_id: Optional[int] = None,
    sku: Optional[str] = None,
    description: Optional[str] = None,
    base_price=None,
    min_price=None,
    max_price=None,
) -> Product:
    """Create a product and its zero-quantity inventory row in one commit."""
    get_organization(db, organization_id)
    name = clean_name(name, "Product name")
    base, low, high = validate_price_bounds(base_price, min_price, max_price)
    if category_id is not None:
        get_category(db, organization_id, category_id)

    existing = db.query(Product).filter(
        Product.organization_id == organization_id,
        func.lower(Product.name) == name.lower(),
    ).first()
    if existing:
        raise ConflictError(f"Product '{name}' already exists")

    product = Product(
        organization_id=organization_id,
        category_id=category_id,
        name=name,
        sku=sku.strip() if sku else None,
        description=description,
        base_price=base,
        min_price=low,
        max_price=high,
    )
    db.add(product)
    try:
        db.flush()  # Get ID without committing
    except IntegrityError as e:
        db.rollback()
        raise ConflictError(f"Product '{name}' already exists") from e
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError(original=e) from e
    db.add(Inventory(organization_id=organization_id, product_id=product.id, quantity=0))
    _commit(db, f"Product '{name}' already exists")
    db.refresh(product)
    logger.info(f"Created product {product.id} ({product.name}) for organization {organization_id}")
    return product
