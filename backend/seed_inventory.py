"""Seed a demo organization with a small hardware catalog and opening stock.

Opening balances go through the ledger as INITIAL transactions, followed by a
few sales and purchases, so the seeded data reconciles like real data.
"""
from stockroom.core.security import get_password_hash
from stockroom.db.init_db import init_db
from stockroom.db.session import SessionLocal
from stockroom.models.organization import Organization
from stockroom.models.product import Product
from stockroom.models.user import User
from stockroom.services import catalog_service, ledger_service

DEMO_ORG = "Demo Hardware Co"
DEMO_EMAIL = "owner@example.com"
DEMO_PASSWORD = "Owner@123456"

CATALOG = {
    "Fasteners": [
        {"name": "Hex Bolt M8x40", "sku": "FAS-HB-0840", "price": "0.35", "opening": 500},
        {"name": "Wood Screw 4x30", "sku": "FAS-WS-0430", "price": "0.08", "opening": 2000},
        {"name": "Nyloc Nut M8", "sku": "FAS-NN-08", "price": "0.12", "opening": 800},
    ],
    "Tools": [
        {"name": "Claw Hammer 16oz", "sku": "TL-CH-16", "price": "18.50", "opening": 25},
        {"name": "Cordless Drill 18V", "sku": "TL-CD-18", "price": "89.00", "opening": 8},
    ],
    "Paint": [
        {"name": "Interior Emulsion 5L White", "sku": "PT-IE-5W", "price": "32.00", "opening": 40},
        {"name": "Masking Tape 25mm", "sku": "PT-MT-25", "price": "2.40", "opening": 150},
    ],
}

# (sku, type, delta, note)
MOVEMENTS = [
    ("FAS-HB-0840", "SALE", -120, "Counter sale"),
    ("FAS-HB-0840", "PURCHASE", 300, "PO 1001"),
    ("TL-CD-18", "SALE", -3, "Counter sale"),
    ("TL-CD-18", "RETURN", 1, "Customer return, unopened"),
    ("PT-IE-5W", "TRANSFER_OUT", -10, "To branch store"),
    ("PT-MT-25", "ADJUSTMENT", -4, "Cycle count"),
]


def seed_inventory():
    init_db()
    db = SessionLocal()
    try:
        org = db.query(Organization).filter(Organization.name == DEMO_ORG).first()
        if org:
            print(f"Organization '{DEMO_ORG}' already seeded (id={org.id})")
            return
        org = catalog_service.create_organization(db, DEMO_ORG, "Seeded demo tenant")
        print(f"Created organization: {org.name}")

        user = db.query(User).filter(User.email == DEMO_EMAIL).first()
        if not user:
            user = User(email=DEMO_EMAIL, name="Demo Owner", hashed_password=get_password_hash(DEMO_PASSWORD))
            db.add(user)
        user.organization_id = org.id
        db.commit()
        print(f"Owner login: {DEMO_EMAIL} / {DEMO_PASSWORD}")

        by_sku = {}
        for category_name, products in CATALOG.items():
            category = catalog_service.create_category(db, org.id, category_name)
            for item in products:
                product = catalog_service.create_product(
                    db, org.id, item["name"], category_id=category.id, sku=item["sku"], base_price=item["price"],
                )
                ledger_service.apply_transaction(
                    db, org.id, product.id, "INITIAL", item["opening"], actor="seed", note="Opening balance",
                )
                by_sku[item["sku"]] = product

        for sku, tx_type, delta, note in MOVEMENTS:
            ledger_service.apply_transaction(db, org.id, by_sku[sku].id, tx_type, delta, actor=DEMO_EMAIL, note=note)

        print(f"Seeded {db.query(Product).filter(Product.organization_id == org.id).count()} products")
        for product, quantity in ledger_service.list_stock_levels(db, org.id):
            print(f"  {product.sku:<12} {product.name:<30} {quantity:>6}")
    finally:
        db.close()


if __name__ == "__main__":
    seed_inventory()
