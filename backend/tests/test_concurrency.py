"""Concurrent writers against the ledger, each with its own session."""
import threading

import pytest

from stockroom.core.exceptions import InsufficientStockError
from stockroom.models.inventory_transaction import InventoryTransaction
from stockroom.services import catalog_service, ledger_service
from stockroom.services.ledger_service import ProductLockRegistry


def _run_in_threads(session_factory, workers):
    """Start every worker at the same moment; return (results, errors) in thread order."""
    barrier = threading.Barrier(len(workers))
    results = [None] * len(workers)
    errors = [None] * len(workers)

    def runner(index, work):
        session = session_factory()
        try:
            barrier.wait()
            results[index] = work(session)
        except Exception as e:
            errors[index] = e
        finally:
            session.close()

    threads = [threading.Thread(target=runner, args=(i, w)) for i, w in enumerate(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    return results, errors


def test_two_sales_of_the_last_unit(db, session_factory, org, product):
    # Workers get plain ids; ORM objects stay with the session that loaded them
    org_id, product_id = org.id, product.id
    ledger_service.apply_transaction(db, org_id, product_id, "INITIAL", 1, actor="seed")

    def sell(session):
        return ledger_service.apply_transaction(session, org_id, product_id, "SALE", -1, actor="till").id

    results, errors = _run_in_threads(session_factory, [sell, sell])

    succeeded = [r for r in results if r is not None]
    assert len(succeeded) == 1
    assert sum(isinstance(e, InsufficientStockError) for e in errors) == 1
    assert all(e is None or isinstance(e, InsufficientStockError) for e in errors)

    db.expire_all()
    assert ledger_service.get_current_quantity(db, org_id, product_id) == 0
    assert ledger_service.reconcile(db, org_id, product_id).is_consistent


@pytest.mark.parametrize("workers", [8])
def test_parallel_movements_keep_a_gapless_sequence(db, session_factory, org, product, workers):
    org_id, product_id = org.id, product.id
    ledger_service.apply_transaction(db, org_id, product_id, "INITIAL", 100, actor="seed")

    def make_work(n):
        def work(session):
            for _ in range(5):
                if n % 2:
                    ledger_service.apply_transaction(session, org_id, product_id, "SALE", -3, actor=f"till-{n}")
                else:
                    ledger_service.apply_transaction(session, org_id, product_id, "PURCHASE", 2, actor=f"dock-{n}")
            return n
        return work

    results, errors = _run_in_threads(session_factory, [make_work(n) for n in range(workers)])
    assert errors == [None] * workers

    db.expire_all()
    sequences = [
        s for (s,) in db.query(InventoryTransaction.sequence)
        .filter(InventoryTransaction.product_id == product_id)
        .order_by(InventoryTransaction.sequence)
        .all()
    ]
    assert sequences == list(range(1, 1 + 1 + workers * 5))

    # 4 sellers and 4 receivers, 5 movements each
    expected = 100 + 4 * 5 * 2 - 4 * 5 * 3
    assert ledger_service.get_current_quantity(db, org_id, product_id) == expected
    report = ledger_service.reconcile(db, org_id, product_id)
    assert report.is_consistent
    assert report.transaction_count == len(sequences)


def test_locks_are_per_product():
    registry = ProductLockRegistry()
    bolts = registry.lock_for(1, 10)
    nuts = registry.lock_for(1, 11)

    assert registry.lock_for(1, 10) is bolts
    assert bolts is not nuts
    assert registry.lock_for(2, 10) is not bolts
    assert len(registry) == 3

    with bolts:
        # A different product is free while this one is held
        assert nuts.acquire(blocking=False)
        nuts.release()
        assert not registry.lock_for(1, 10).acquire(blocking=False)


def test_writer_on_one_product_does_not_block_another(db, session_factory, org, product):
    other = catalog_service.create_product(db, org.id, "Washer M8")
    org_id, product_id, other_id = org.id, product.id, other.id
    registry = ProductLockRegistry()
    finished = threading.Event()

    def receive_other():
        session = session_factory()
        try:
            ledger_service.apply_transaction(session, org_id, other_id, "PURCHASE", 4, actor="dock", locks=registry)
            finished.set()
        finally:
            session.close()

    with registry.lock_for(org_id, product_id):
        worker = threading.Thread(target=receive_other)
        worker.start()
        assert finished.wait(timeout=30)
        worker.join(timeout=30)

    db.expire_all()
    assert ledger_service.get_current_quantity(db, org_id, other_id) == 4
