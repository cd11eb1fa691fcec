from stockroom.models.organization import Organization
from stockroom.models.user import User
from stockroom.models.category import Category
from stockroom.models.product import Product
from stockroom.models.inventory import Inventory
from stockroom.models.inventory_transaction import InventoryTransaction, TransactionType

__all__ = ["Organization", "User", "Category", "Product", "Inventory", "InventoryTransaction", "TransactionType"]
