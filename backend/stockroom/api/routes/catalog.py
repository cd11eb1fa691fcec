"""Catalog: categories and products of the caller's organization."""
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stockroom.api.deps import get_db, get_current_user, get_current_organization
from stockroom.core.audit import AuditLog
from stockroom.models.organization import Organization
from stockroom.models.user import User
from stockroom.schemas.catalog import CategoryCreate, CategoryResponse, ProductCreate, ProductResponse
from stockroom.services import catalog_service

router = APIRouter()


@router.get("/categories", response_model=List[CategoryResponse])
def list_categories(db: Session = Depends(get_db), org: Organization = Depends(get_current_organization)):
    return catalog_service.list_categories(db, org.id)


@router.post("/categories", response_model=CategoryResponse, status_code=201)
def create_category(
    data: CategoryCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    org: Organization = Depends(get_current_organization),
):
    category = catalog_service.create_category(db, org.id, data.name, data.description)
    AuditLog.log_action("create", "category", category.id, current_user.id, organization_id=org.id)
    return category


@router.get("/products", response_model=List[ProductResponse])
def list_products(
    search: str | None = Query(None),
    db: Session = Depends(get_db),
    org: Organization = Depends(get_current_organization),
):
    """Product list with search."""
    return catalog_service.list_products(db, org.id, search=search)


@router.post("/products", response_model=ProductResponse, status_code=201)
def create_product(
    data: ProductCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    org: Organization = Depends(get_current_organization),
):
    """Add a product; its stock starts at zero and changes only through inventory transactions."""
    product = catalog_service.create_product(
        db,
        org.id,
        data.name,
        category_id=data.category_id,
        sku=data.sku,
        description=data.description,
        base_price=data.base_price,
        min_price=data.min_price,
        max_price=data.max_price,
    )
    AuditLog.log_action("create", "product", product.id, current_user.id, organization_id=org.id,
                        changes={"name": product.name})
    return product


@router.get("/products/{product_id}", response_model=ProductResponse)
def get_product(product_id: int, db: Session = Depends(get_db), org: Organization = Depends(get_current_organization)):
    return catalog_service.get_product(db, org.id, product_id)
