from pydantic import BaseModel, StrictInt
from typing import List, Optional
from datetime import datetime

from stockroom.models.inventory_transaction import TransactionType


class TransactionCreate(BaseModel):
    # Sign must match the type: SALE/TRANSFER_OUT negative, ADJUSTMENT either, rest positive
    type: str  # a TransactionType name; validated by the ledger
    delta: StrictInt
    note: Optional[str] = None


class TransactionRecord(BaseModel):
    id: int
    organization_id: int
    product_id: int
    type: TransactionType
    delta: int
    resulting_balance: int
    sequence: int
    actor: str
    note: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class TransactionPage(BaseModel):
    total: int
    offset: int
    limit: int
    items: List[TransactionRecord]


class StockLevel(BaseModel):
    product_id: int
    product_name: str
    sku: Optional[str] = None
    quantity: int
    status: str


class ReconciliationRecord(BaseModel):
    organization_id: int
    product_id: int
    recorded_quantity: int
    replayed_quantity: int
    transaction_count: int
    first_divergent_sequence: Optional[int] = None
    is_consistent: bool

    class Config:
        from_attributes = True
