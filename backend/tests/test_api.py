"""End-to-end HTTP flows: auth, organization setup, catalog and the inventory ledger."""
import pytest
from sqlalchemy.exc import OperationalError

from stockroom.services import ledger_service
from conftest import PASSWORD


@pytest.fixture
def owner(client, login):
    """Registered user with an organization; returns auth headers."""
    response = client.post(
        "/auth/register", json={"email": "Owner@Example.com", "password": PASSWORD, "name": "Owner"},
    )
    assert response.status_code == 200, response.text
    headers = login("owner@example.com")
    response = client.post("/organizations/setup", json={"name": "Acme Supplies"}, headers=headers)
    assert response.status_code == 200, response.text
    return headers


@pytest.fixture
def bolt(client, owner):
    response = client.post(
        "/catalog/products", json={"name": "Hex Bolt M8", "sku": "HB-M8", "base_price": "0.40"}, headers=owner,
    )
    assert response.status_code == 201, response.text
    return response.json()


def _post_tx(client, headers, product_id, tx_type, delta, note=None):
    return client.post(
        f"/inventory/{product_id}/transactions",
        json={"type": tx_type, "delta": delta, "note": note},
        headers=headers,
    )


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


# ------------------------------------------------------------------------------
# Auth and organizations
# ------------------------------------------------------------------------------

def test_register_login_and_me(client, login):
    response = client.post("/auth/register", json={"email": "clerk@example.com", "password": PASSWORD})
    assert response.status_code == 200
    assert response.json()["organization_id"] is None

    headers = login("clerk@example.com")
    me = client.get("/auth/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["email"] == "clerk@example.com"


def test_register_rejects_duplicate_email_and_weak_password(client):
    assert client.post("/auth/register", json={"email": "a@example.com", "password": PASSWORD}).status_code == 200

    duplicate = client.post("/auth/register", json={"email": "A@example.com", "password": PASSWORD})
    assert duplicate.status_code == 400

    weak = client.post("/auth/register", json={"email": "b@example.com", "password": "short"})
    assert weak.status_code == 400


def test_login_failures_are_generic(client, make_user):
    make_user("known@example.com")
    wrong_password = client.post("/auth/login", json={"email": "known@example.com", "password": "Wrong-pass-123"})
    unknown_user = client.post("/auth/login", json={"email": "nobody@example.com", "password": PASSWORD})

    assert wrong_password.status_code == unknown_user.status_code == 401
    assert wrong_password.json() == unknown_user.json()


def test_requests_without_token_are_rejected(client):
    assert client.get("/inventory").status_code == 401
    assert client.get("/inventory", headers={"Authorization": "Bearer not-a-token"}).status_code == 401


def test_cookie_login_is_accepted(client, make_user):
    make_user("cookie@example.com")
    response = client.post("/auth/login", json={"email": "cookie@example.com", "password": PASSWORD})
    assert response.status_code == 200
    assert client.get("/auth/me").json()["email"] == "cookie@example.com"


def test_scoped_routes_need_an_organization(client, make_user, login):
    make_user("loner@example.com")
    headers = login("loner@example.com")
    response = client.get("/catalog/products", headers=headers)
    assert response.status_code == 404
    assert "setup" in response.json()["detail"]


def test_organization_setup_once_per_user(client, owner):
    again = client.post("/organizations/setup", json={"name": "Second Shop"}, headers=owner)
    assert again.status_code == 409

    mine = client.get("/organizations/me", headers=owner)
    assert mine.status_code == 200
    assert mine.json()["name"] == "Acme Supplies"


def test_organization_names_are_unique_ignoring_case(client, owner, make_user, login):
    make_user("rival@example.com")
    headers = login("rival@example.com")
    response = client.post("/organizations/setup", json={"name": "ACME supplies"}, headers=headers)
    assert response.status_code == 409


def test_organization_metadata_update(client, owner):
    response = client.patch("/organizations/me", json={"description": "Fasteners wholesale"}, headers=owner)
    assert response.status_code == 200
    assert response.json()["description"] == "Fasteners wholesale"
    assert response.json()["name"] == "Acme Supplies"


def test_foreign_organization_looks_missing(client, owner, db, other_org):
    mine = client.get("/organizations/me", headers=owner).json()
    assert client.get(f"/organizations/{mine['id']}", headers=owner).status_code == 200
    assert client.get(f"/organizations/{other_org.id}", headers=owner).status_code == 404


# ------------------------------------------------------------------------------
# Catalog
# ------------------------------------------------------------------------------

def test_catalog_flow(client, owner):
    category = client.post("/catalog/categories", json={"name": "Fasteners"}, headers=owner)
    assert category.status_code == 201

    product = client.post(
        "/catalog/products",
        json={"name": "Nyloc Nut M8", "category_id": category.json()["id"], "min_price": "0.10", "max_price": "0.20"},
        headers=owner,
    )
    assert product.status_code == 201
    product_id = product.json()["id"]

    listed = client.get("/catalog/products", params={"search": "nyloc"}, headers=owner).json()
    assert [p["id"] for p in listed] == [product_id]
    assert client.get(f"/inventory/{product_id}", headers=owner).json() == {"product_id": product_id, "quantity": 0}


def test_catalog_rejects_duplicates_and_bad_prices(client, owner, bolt):
    assert client.post("/catalog/products", json={"name": "hex bolt m8"}, headers=owner).status_code == 409
    bad = client.post(
        "/catalog/products", json={"name": "Washer", "min_price": "5", "max_price": "1"}, headers=owner,
    )
    assert bad.status_code == 400
    assert client.post("/catalog/categories", json={"name": "  "}, headers=owner).status_code == 400


# ------------------------------------------------------------------------------
# Inventory ledger
# ------------------------------------------------------------------------------

def test_transactions_update_stock_and_history(client, owner, bolt):
    pid = bolt["id"]
    first = _post_tx(client, owner, pid, "INITIAL", 10, note="opening")
    assert first.status_code == 201
    assert first.json()["resulting_balance"] == 10
    assert first.json()["actor"] == "owner@example.com"

    sale = _post_tx(client, owner, pid, "SALE", -4)
    assert sale.status_code == 201
    assert sale.json()["resulting_balance"] == 6
    assert sale.json()["sequence"] == 2

    assert client.get(f"/inventory/{pid}", headers=owner).json()["quantity"] == 6

    page = client.get(f"/inventory/{pid}/transactions", headers=owner).json()
    assert page["total"] == 2
    assert [t["type"] for t in page["items"]] == ["SALE", "INITIAL"]

    window = client.get(f"/inventory/{pid}/transactions", params={"offset": 1, "limit": 1}, headers=owner).json()
    assert [t["sequence"] for t in window["items"]] == [1]


def test_invalid_movements_are_400(client, owner, bolt):
    pid = bolt["id"]
    assert _post_tx(client, owner, pid, "SALE", 5).status_code == 400
    assert _post_tx(client, owner, pid, "PURCHASE", 0).status_code == 400
    assert _post_tx(client, owner, pid, "TELEPORT", 1).status_code == 400
    # Non-integer deltas fail request validation
    assert _post_tx(client, owner, pid, "PURCHASE", 1.5).status_code == 422


def test_insufficient_stock_is_409_and_changes_nothing(client, owner, bolt):
    pid = bolt["id"]
    _post_tx(client, owner, pid, "INITIAL", 3)

    response = _post_tx(client, owner, pid, "SALE", -4)
    assert response.status_code == 409
    assert "Insufficient stock" in response.json()["detail"]
    assert client.get(f"/inventory/{pid}", headers=owner).json()["quantity"] == 3
    assert client.get(f"/inventory/{pid}/transactions", headers=owner).json()["total"] == 1


def test_storage_failure_is_503_with_retry_after(client, owner, bolt, monkeypatch):
    pid = bolt["id"]
    _post_tx(client, owner, pid, "INITIAL", 3)

    def broken_insert(*args, **kwargs):
        raise OperationalError("INSERT INTO inventory_transactions", {}, Exception("database is locked"))

    monkeypatch.setattr(ledger_service, "_record_transaction", broken_insert)
    response = _post_tx(client, owner, pid, "SALE", -1)
    assert response.status_code == 503
    assert "Retry-After" in response.headers
    # Internal error text is not exposed
    assert "locked" not in response.json()["detail"]

    monkeypatch.undo()
    assert client.get(f"/inventory/{pid}", headers=owner).json()["quantity"] == 3


def test_other_tenants_products_are_404(client, owner, bolt, make_user, login):
    make_user("rival@example.com")
    rival = login("rival@example.com")
    client.post("/organizations/setup", json={"name": "Globex Trading"}, headers=rival)

    pid = bolt["id"]
    assert client.get(f"/inventory/{pid}", headers=rival).status_code == 404
    assert _post_tx(client, rival, pid, "PURCHASE", 5).status_code == 404
    assert client.get(f"/inventory/{pid}/transactions", headers=rival).status_code == 404
    assert client.get(f"/inventory/{pid}/reconciliation", headers=rival).status_code == 404
    assert client.get(f"/catalog/products/{pid}", headers=rival).status_code == 404
    assert client.get(f"/inventory/{pid}", headers=owner).json()["quantity"] == 0


def test_stock_list_and_low_stock_filter(client, owner, bolt):
    anchor = client.post("/catalog/products", json={"name": "Anchor Plug"}, headers=owner).json()
    _post_tx(client, owner, bolt["id"], "INITIAL", 5)
    _post_tx(client, owner, anchor["id"], "INITIAL", 500)

    stock = client.get("/inventory", headers=owner).json()
    assert {s["product_name"]: s["quantity"] for s in stock} == {"Anchor Plug": 500, "Hex Bolt M8": 5}

    low = client.get("/inventory", params={"low_stock": True, "threshold": 10}, headers=owner).json()
    assert [(s["product_name"], s["status"]) for s in low] == [("Hex Bolt M8", "Low Stock")]


def test_reconciliation_endpoints(client, owner, bolt):
    pid = bolt["id"]
    _post_tx(client, owner, pid, "INITIAL", 8)
    _post_tx(client, owner, pid, "SALE", -2)

    report = client.get(f"/inventory/{pid}/reconciliation", headers=owner).json()
    assert report["is_consistent"] is True
    assert report["recorded_quantity"] == report["replayed_quantity"] == 6
    assert report["transaction_count"] == 2

    everything = client.get("/inventory/reconciliation", headers=owner).json()
    assert [r["product_id"] for r in everything] == [pid]
    assert everything[0]["is_consistent"] is True
