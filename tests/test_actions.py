import threading
from datetime import date

import pytest

import actions
import billing
from db import LocalStore
from exceptions import InvalidTransition
from models import BillStatus, Dataset


def test_load_returns_dataset(store):
    ds = actions.load(store)

    assert isinstance(ds, Dataset)
    assert [p.id for p in ds.packages] == ["PKG001", "PKG002", "PKG003"]


def test_run_persists_reducer_result(store):
    result = actions.run(store, billing.mark_paid, "BILL002", penalty=10000, paid_at="2025-01-05 12:00:00")

    assert isinstance(result, Dataset)
    bill = actions.load(store).get("bills", "BILL002")
    assert bill.status == BillStatus.PAID
    assert bill.penalty_amount == 10000
    assert store.get("bills")[1]["paidAt"] == "2025-01-05 12:00:00"


def test_run_returns_tuple_results(store):
    ds, created = actions.run(store, billing.generate_bills, "1", 2030)

    assert len(created) == 1
    assert len(actions.load(store).bills) == 4


def test_run_does_not_write_when_reducer_raises(store):
    with pytest.raises(InvalidTransition):
        actions.run(store, billing.reject_payment, "BILL001")

    assert actions.load(store).get("bills", "BILL001").status == BillStatus.PAID


def test_enter_admin_session_bills_once_per_period(store):
    created = actions.enter_admin_session(store, today=date(2030, 1, 15))
    assert [(b.customer_id, b.month, b.year) for b in created] == [("CUST001", "1", 2030)]

    assert actions.enter_admin_session(store, today=date(2030, 1, 16)) == []
    bills = [b for b in actions.load(store).bills if b.year == 2030]
    assert len(bills) == 1


def test_parallel_generation_creates_one_bill_per_customer(tmp_path):
    path = tmp_path / "shared.db"
    LocalStore(db_file=path, latency=0).load()
    stores = [LocalStore(db_file=path, latency=0.05) for _ in range(6)]
    barrier = threading.Barrier(len(stores))
    errors = []

    def worker(store):
        barrier.wait()
        try:
            actions.run(store, billing.generate_bills, "1", 2030)
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(s,)) for s in stores]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    bills = [b for b in actions.load(stores[0]).bills if b.year == 2030]
    assert [(b.customer_id, b.month) for b in bills] == [("CUST001", "1")]
