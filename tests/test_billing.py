from dataclasses import replace
from datetime import date

import pytest

import billing
import registry
from exceptions import InvalidPenalty, InvalidPeriod, InvalidTransition, RecordNotFound
from models import BillStatus, CustomerStatus, Dataset


def with_bills(dataset, *bills):
    return replace(dataset, bills=tuple(bills))


# ---------- generation ----------

def test_generate_creates_one_unpaid_bill_per_active_customer(small_dataset):
    ds, created = billing.generate_bills(small_dataset, "11", 2025)

    assert len(created) == 1
    bill = created[0]
    assert bill.customer_id == "C1"
    assert bill.month == "11"
    assert bill.year == 2025
    assert bill.amount == 150000
    assert bill.status == BillStatus.UNPAID
    assert bill.due_date == "2025-11-10"
    assert ds.bills == (bill,)
    # input left untouched
    assert small_dataset.bills == ()


def test_generate_twice_does_not_duplicate(small_dataset):
    ds, _ = billing.generate_bills(small_dataset, "11", 2025)
    ds2, created = billing.generate_bills(ds, 11, "2025")

    assert created == []
    assert ds2 is ds
    keys = [(b.customer_id, b.month, b.year) for b in ds2.bills]
    assert len(keys) == len(set(keys))


def test_generate_skips_customers_that_are_not_active(dataset):
    ds, created = billing.generate_bills(dataset, "1", 2030)

    assert [b.customer_id for b in created] == ["CUST001"]
    assert all(dataset.get("customers", b.customer_id).status == CustomerStatus.ACTIVE for b in ds.bills
               if b.year == 2030)


def test_generate_pads_due_date_and_unpads_month(small_dataset):
    _, created = billing.generate_bills(small_dataset, "03", 2026)

    assert created[0].month == "3"
    assert created[0].due_date == "2026-03-10"


def test_generate_rejects_bad_month(small_dataset):
    with pytest.raises(InvalidPeriod):
        billing.generate_bills(small_dataset, "13", 2025)
    with pytest.raises(InvalidPeriod):
        billing.generate_bills(small_dataset, "abc", 2025)


def test_bill_amount_is_frozen_when_package_price_changes(small_dataset):
    ds, created = billing.generate_bills(small_dataset, "11", 2025)
    ds = registry.update_package(ds, "P1", price=999000)

    assert ds.get("bills", created[0].id).amount == 150000
    assert ds.get("packages", "P1").price == 999000


def test_generate_uses_zero_amount_when_package_missing(small_dataset):
    ds = registry.delete_package(small_dataset, "P1")
    _, created = billing.generate_bills(ds, "11", 2025)

    assert created[0].amount == 0


# ---------- auto-billing ----------

def test_auto_billing_fires_on_or_after_billing_day(small_dataset):
    assert billing.should_auto_generate(small_dataset, date(2025, 11, 5))

    ds, created = billing.auto_generate(small_dataset, date(2025, 11, 5))
    assert [(b.month, b.year) for b in created] == [("11", 2025)]
    assert not billing.should_auto_generate(ds, date(2025, 11, 6))


def test_auto_billing_waits_for_billing_day(small_dataset):
    ds = registry.update_admin_profile(small_dataset, billing_day=10)

    assert not billing.should_auto_generate(ds, date(2025, 11, 9))
    assert billing.should_auto_generate(ds, date(2025, 11, 10))


def test_auto_billing_disabled(small_dataset):
    ds = registry.update_admin_profile(small_dataset, auto_billing_enabled=False)

    ds2, created = billing.auto_generate(ds, date(2025, 11, 20))
    assert created == []
    assert ds2 is ds


# ---------- lifecycle ----------

def test_mark_paid_with_penalty(small_dataset, make_bill):
    ds = with_bills(small_dataset, make_bill("B1", amount=100000))

    ds = billing.mark_paid(ds, "B1", penalty=20000)
    bill = ds.get("bills", "B1")

    assert bill.status == BillStatus.PAID
    assert bill.penalty_amount == 20000
    assert bill.paid_at
    assert bill.total_payable == 120000


def test_mark_paid_without_penalty_keeps_existing_one(small_dataset, make_bill):
    ds = with_bills(small_dataset, make_bill("B1", status=BillStatus.PENDING, penalty_amount=5000))

    ds = billing.mark_paid(ds, "B1", paid_at="2025-11-20 08:00:00")
    bill = ds.get("bills", "B1")

    assert bill.penalty_amount == 5000
    assert bill.paid_at == "2025-11-20 08:00:00"
    assert bill.total_payable == 105000


def test_mark_paid_never_lowers_total_payable(small_dataset, make_bill):
    ds = with_bills(small_dataset, make_bill("B1", penalty_amount=10000))

    with pytest.raises(InvalidPenalty):
        billing.mark_paid(ds, "B1", penalty=5000)
    with pytest.raises(InvalidPenalty):
        billing.mark_paid(ds, "B1", penalty=-1)
    assert ds.get("bills", "B1").status == BillStatus.UNPAID


def test_mark_paid_rejects_paid_and_unknown_bills(small_dataset, make_bill):
    ds = with_bills(small_dataset, make_bill("B1", status=BillStatus.PAID, paid_at="2025-11-01 10:00:00"))

    with pytest.raises(InvalidTransition):
        billing.mark_paid(ds, "B1")
    with pytest.raises(RecordNotFound) as exc:
        billing.mark_paid(ds, "NOPE")
    assert exc.value.table == "bills"
    assert exc.value.record_id == "NOPE"


def test_confirm_payment_moves_unpaid_to_pending(small_dataset, make_bill):
    ds = with_bills(small_dataset, make_bill("B1"))

    ds = billing.confirm_payment(ds, "B1", "BANK BCA")
    bill = ds.get("bills", "B1")

    assert bill.status == BillStatus.PENDING
    assert bill.payment_method == "BANK BCA"
    with pytest.raises(InvalidTransition):
        billing.confirm_payment(ds, "B1", "BANK BCA")


def test_reject_payment_returns_pending_to_unpaid(small_dataset, make_bill):
    ds = with_bills(small_dataset, make_bill("B2", status=BillStatus.PENDING, payment_method="DANA"))

    ds = billing.reject_payment(ds, "B2")
    bill = ds.get("bills", "B2")

    assert bill.status == BillStatus.UNPAID
    assert bill.payment_method == ""


def test_reject_payment_requires_pending(small_dataset, make_bill):
    ds = with_bills(small_dataset, make_bill("B1"))

    with pytest.raises(InvalidTransition):
        billing.reject_payment(ds, "B1")


def test_mark_multiple_paid_shares_timestamp_and_skips_unknown(small_dataset, make_bill):
    ds = with_bills(
        small_dataset,
        make_bill("B1"),
        make_bill("B2", status=BillStatus.PENDING),
        make_bill("B3"),
    )

    ds = billing.mark_multiple_paid(ds, ["B1", "B2", "GHOST"], paid_at="2025-11-15 09:00:00")

    assert [b.status for b in ds.bills] == [BillStatus.PAID, BillStatus.PAID, BillStatus.UNPAID]
    assert {b.paid_at for b in ds.bills[:2]} == {"2025-11-15 09:00:00"}
    assert len(ds.bills) == 3


def test_payable_ids_drops_paid_bills(small_dataset, make_bill):
    ds = with_bills(
        small_dataset,
        make_bill("B1"),
        make_bill("B2", status=BillStatus.PAID),
        make_bill("B3", status=BillStatus.PENDING),
    )

    assert billing.payable_ids(ds, ["B1", "B2", "B3", "GHOST"]) == ["B1", "B3"]


def test_delete_bills(small_dataset, make_bill):
    ds = with_bills(small_dataset, make_bill("B1"), make_bill("B2"), make_bill("B3"))

    ds = billing.delete_bill(ds, "B1")
    ds = billing.delete_bills(ds, ["B2", "GHOST"])

    assert [b.id for b in ds.bills] == ["B3"]


def test_overdue_and_suggested_penalty(make_bill):
    bill = make_bill("B1", due_date="2025-11-10")

    assert not billing.is_overdue(bill, "2025-11-10")
    assert billing.is_overdue(bill, "2025-11-11")
    assert billing.suggested_penalty(bill, "2025-11-01") == 0
    assert billing.suggested_penalty(bill, "2025-12-01") == 10000
    assert billing.suggested_penalty(replace(bill, penalty_amount=25000), "2025-12-01") == 25000
    assert not billing.is_overdue(replace(bill, status=BillStatus.PENDING), "2025-12-01")


# ---------- collectors ----------

def test_assign_collector_and_stats(small_dataset, make_bill):
    ds = with_bills(
        small_dataset,
        make_bill("B1", amount=100000),
        make_bill("B2", amount=50000, status=BillStatus.PAID),
        make_bill("B3", amount=70000),
    )

    ds = billing.assign_collector(ds, ["B1", "B2"], "COL1")
    assert [b.id for b in billing.bills_for_collector(ds, "COL1")] == ["B1", "B2"]

    stats = billing.collector_stats(ds, "COL1")
    assert stats.count == 2
    assert stats.paid_count == 1
    assert stats.total_assigned == 150000
    assert stats.total_collected == 50000

    ds = billing.assign_collector(ds, ["B1"], "COL2")
    assert [b.id for b in billing.bills_for_collector(ds, "COL1")] == ["B2"]
    ds = billing.assign_collector(ds, ["B2"], None)
    assert billing.bills_for_collector(ds, "COL1") == []


# ---------- queries ----------

def test_filter_bills(dataset):
    today = "2025-01-01"

    assert {b.id for b in billing.filter_bills(dataset, month="10", year=2024)} == {"BILL001", "BILL002"}
    assert [b.id for b in billing.filter_bills(dataset, kind="paid")] == ["BILL001"]
    assert {b.id for b in billing.filter_bills(dataset, kind="overdue", today=today)} == {"BILL002", "BILL003"}
    assert billing.filter_bills(dataset, kind="pending") == []
    assert {b.id for b in billing.filter_bills(dataset, search="budi")} == {"BILL001", "BILL003"}
    assert [b.id for b in billing.filter_bills(dataset, search="bill002")] == ["BILL002"]


def test_customer_history_newest_first(dataset):
    assert [b.id for b in billing.customer_history(dataset, "CUST001")] == ["BILL003", "BILL001"]


def test_dashboard_summary(dataset):
    summary = billing.dashboard_summary(dataset, today="2025-01-01")

    assert summary.active_customers == 1
    assert summary.total_revenue == 150000
    assert summary.overdue_count == 2
    assert summary.overdue_amount == 400000
    assert summary.pending_count == 0
    assert summary.potential_monthly == 150000


def test_reducers_do_not_mutate_input(dataset):
    before = dataset.to_doc()
    billing.generate_bills(dataset, "1", 2030)
    billing.mark_paid(dataset, "BILL002", penalty=10000)
    billing.delete_bills(dataset, ["BILL001"])

    assert dataset.to_doc() == before
    assert isinstance(dataset, Dataset)
