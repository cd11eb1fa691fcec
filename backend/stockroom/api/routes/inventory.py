"""Inventory: stock levels, ledger transactions, history and reconciliation."""
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stockroom.api.deps import get_db, get_current_user, get_current_organization
from stockroom.core.config import settings
from stockroom.models.organization import Organization
from stockroom.models.user import User
from stockroom.schemas.inventory import (
    ReconciliationRecord, StockLevel, TransactionCreate, TransactionPage, TransactionRecord,
)
from stockroom.services import ledger_service

router = APIRouter()


def _stock_status(quantity: int, threshold: int) -> str:
    if quantity == 0:
        return "Out of Stock"
    return "Low Stock" if quantity < threshold else "In Stock"


@router.get("", response_model=List[StockLevel])
def list_stock(
    low_stock: bool = Query(False, description="Only products under the low stock threshold"),
    threshold: int | None = Query(None, ge=1, description="Override LOW_STOCK_THRESHOLD"),
    db: Session = Depends(get_db),
    org: Organization = Depends(get_current_organization),
):
    """Current quantity of every product in the organization."""
    limit = threshold or settings.LOW_STOCK_THRESHOLD
    rows = ledger_service.list_stock_levels(db, org.id, below=limit if low_stock else None)
    return [
        StockLevel(
            product_id=product.id,
            product_name=product.name,
            sku=product.sku,
            quantity=quantity,
            status=_stock_status(quantity, limit),
        )
        for product, quantity in rows
    ]


@router.get("/reconciliation", response_model=List[ReconciliationRecord])
def reconcile_organization(db: Session = Depends(get_db), org: Organization = Depends(get_current_organization)):
    """Audit every product: replaying the log must reproduce the stored quantity."""
    return [ReconciliationRecord.model_validate(report) for report in ledger_service.reconcile_organization(db, org.id)]


@router.get("/{product_id}")
def get_quantity(product_id: int, db: Session = Depends(get_db), org: Organization = Depends(get_current_organization)):
    quantity = ledger_service.get_current_quantity(db, org.id, product_id)
    return {"product_id": product_id, "quantity": quantity}


@router.post("/{product_id}/transactions", response_model=TransactionRecord, status_code=201)
def apply_transaction(
    product_id: int,
    data: TransactionCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    org: Organization = Depends(get_current_organization),
):
    """Record a stock movement. The response carries the resulting balance."""
    return ledger_service.apply_transaction(
        db,
        org.id,
        product_id,
        data.type,
        data.delta,
        actor=current_user.email,
        note=data.note,
    )


@router.get("/{product_id}/transactions", response_model=TransactionPage)
def list_transactions(
    product_id: int,
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1),
    db: Session = Depends(get_db),
    org: Organization = Depends(get_current_organization),
):
    """Newest first."""
    limit = min(limit, settings.LEDGER_HISTORY_MAX_LIMIT)
    history = ledger_service.list_transaction_history(
        db, org.id, product_id, ledger_service.Pagination(offset=offset, limit=limit),
    )
    return TransactionPage(
        total=history.count(),
        offset=offset,
        limit=limit,
        items=[TransactionRecord.model_validate(txn) for txn in history],
    )


@router.get("/{product_id}/reconciliation", response_model=ReconciliationRecord)
def reconcile_product(product_id: int, db: Session = Depends(get_db), org: Organization = Depends(get_current_organization)):
    return ReconciliationRecord.model_validate(ledger_service.reconcile(db, org.id, product_id))
