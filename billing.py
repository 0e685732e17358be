"""
billing.py
Billing cycle generation, bill lifecycle transitions, collector assignment
and the read-side queries used by the dashboards.

Every mutating function is a reducer: it takes a Dataset and returns a new
one, raising a BillingError subclass when the request is invalid.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date

import config
import utils
from exceptions import InvalidPenalty, InvalidTransition
from models import Bill, BillStatus, CustomerStatus, Dataset

logger = logging.getLogger(__name__)


# ---------- Billing cycle ----------

def customers_missing_bill(dataset: Dataset, month, year: int) -> list:
    """Active customers with no bill for (month, year)."""
    month = utils.normalize_month(month)
    billed = {b.customer_id for b in dataset.bills if b.month == month and b.year == int(year)}
    return [c for c in dataset.customers if c.status == CustomerStatus.ACTIVE and c.id not in billed]


def generate_bills(dataset: Dataset, month, year: int) -> tuple[Dataset, list[Bill]]:
    """
    Create one Unpaid bill per Active customer lacking a bill for the period.
    The amount is the package price at this moment (0 if the package is gone).
    """
    month = utils.normalize_month(month)
    year = int(year)
    prices = {p.id: p.price for p in dataset.packages}

    created: list[Bill] = []
    for customer in customers_missing_bill(dataset, month, year):
        created.append(
            Bill(
                id=utils.new_id(),
                customer_id=customer.id,
                month=month,
                year=year,
                amount=prices.get(customer.package_id, 0),
                status=BillStatus.UNPAID,
                due_date=utils.due_date(month, year),
            )
        )

    logger.info("[BILLING] Generated %d bill(s) for %s/%s", len(created), month, year)
    if not created:
        return dataset, created
    return replace(dataset, bills=dataset.bills + tuple(created)), created


def should_auto_generate(dataset: Dataset, today: date | None = None) -> bool:
    """
    Auto-billing fires on admin session entry once the billing day of the
    current month is reached and some Active customer is still unbilled.
    """
    today = today or date.today()
    profile = dataset.admin_profile
    if not profile.auto_billing_enabled:
        return False
    if today.day < profile.billing_day:
        return False
    return bool(customers_missing_bill(dataset, today.month, today.year))


def auto_generate(dataset: Dataset, today: date | None = None) -> tuple[Dataset, list[Bill]]:
    """Run generation for the current period when should_auto_generate allows it."""
    today = today or date.today()
    if not should_auto_generate(dataset, today):
        return dataset, []
    logger.info("[BILLING] Auto-billing triggered for %s/%s", today.month, today.year)
    return generate_bills(dataset, today.month, today.year)


# ---------- Lifecycle ----------

def is_overdue(bill: Bill, today: str | None = None) -> bool:
    return bill.status == BillStatus.UNPAID and bill.due_date < (today or utils.today_iso())


def suggested_penalty(bill: Bill, today: str | None = None) -> int:
    """Pre-filled penalty for the mark-paid form."""
    if is_overdue(bill, today):
        return max(config.LATE_PENALTY, bill.penalty_amount or 0)
    return bill.penalty_amount or 0


def confirm_payment(dataset: Dataset, bill_id: str, method: str) -> Dataset:
    """Customer claims a manual payment: Unpaid -> Pending. Nothing is verified."""
    bill = dataset.get("bills", bill_id)
    if bill.status != BillStatus.UNPAID:
        raise InvalidTransition(f"Bill {bill_id} is {bill.status.value}; only Unpaid bills can be confirmed.")
    logger.info("[BILLING] Bill %s confirmed by customer via %r", bill_id, method)
    return dataset.update("bills", bill_id, status=BillStatus.PENDING, payment_method=method)


def mark_paid(dataset: Dataset, bill_id: str, penalty: int | None = None, paid_at: str | None = None) -> Dataset:
    """
    Any non-Paid bill -> Paid. A given penalty replaces the current one but
    may not lower the total payable.
    """
    bill = dataset.get("bills", bill_id)
    if bill.status == BillStatus.PAID:
        raise InvalidTransition(f"Bill {bill_id} is already Paid.")

    changes = {"status": BillStatus.PAID, "paid_at": paid_at or utils.now_stamp()}
    if penalty is not None:
        penalty = int(penalty)
        if penalty < 0:
            raise InvalidPenalty("Penalty cannot be negative.")
        if penalty < (bill.penalty_amount or 0):
            raise InvalidPenalty(
                f"Penalty {penalty} is lower than the recorded penalty {bill.penalty_amount}."
            )
        changes["penalty_amount"] = penalty

    logger.info("[BILLING] Bill %s marked Paid (penalty=%s)", bill_id, changes.get("penalty_amount"))
    return dataset.update("bills", bill_id, **changes)


def reject_payment(dataset: Dataset, bill_id: str) -> Dataset:
    """Admin rejects a claimed payment: Pending -> Unpaid and the method is cleared."""
    bill = dataset.get("bills", bill_id)
    if bill.status != BillStatus.PENDING:
        raise InvalidTransition(f"Bill {bill_id} is {bill.status.value}; only Pending bills can be rejected.")
    logger.info("[BILLING] Payment for bill %s rejected", bill_id)
    return dataset.update("bills", bill_id, status=BillStatus.UNPAID, payment_method="")


def payable_ids(dataset: Dataset, ids) -> list[str]:
    """Subset of `ids` that are Unpaid or Pending (the bulk-pay selection)."""
    wanted = set(ids)
    return [b.id for b in dataset.bills if b.id in wanted and b.status != BillStatus.PAID]


def mark_multiple_paid(dataset: Dataset, ids, paid_at: str | None = None) -> Dataset:
    """Bulk Paid with one shared timestamp. No per-bill state check; unknown ids are skipped."""
    wanted = set(ids)
    paid_at = paid_at or utils.now_stamp()
    bills = tuple(
        replace(b, status=BillStatus.PAID, paid_at=paid_at) if b.id in wanted else b
        for b in dataset.bills
    )
    logger.info("[BILLING] Bulk marked %d bill(s) Paid", sum(1 for b in dataset.bills if b.id in wanted))
    return replace(dataset, bills=bills)


def delete_bill(dataset: Dataset, bill_id: str) -> Dataset:
    return dataset.remove("bills", [bill_id])


def delete_bills(dataset: Dataset, ids) -> Dataset:
    return dataset.remove("bills", ids)


# ---------- Collector assignment ----------

def assign_collector(dataset: Dataset, ids, collector_id: str | None) -> Dataset:
    """Overwrite collectorId on every listed bill. No history is kept."""
    wanted = set(ids)
    bills = tuple(
        replace(b, collector_id=collector_id) if b.id in wanted else b
        for b in dataset.bills
    )
    return replace(dataset, bills=bills)


def bills_for_collector(dataset: Dataset, collector_id: str) -> list[Bill]:
    return [b for b in dataset.bills if b.collector_id == collector_id]


@dataclass(frozen=True)
class CollectorStats:
    total_assigned: int
    total_collected: int
    count: int
    paid_count: int


def collector_stats(dataset: Dataset, collector_id: str) -> CollectorStats:
    bills = bills_for_collector(dataset, collector_id)
    paid = [b for b in bills if b.status == BillStatus.PAID]
    return CollectorStats(
        total_assigned=sum(b.amount for b in bills),
        total_collected=sum(b.amount for b in paid),
        count=len(bills),
        paid_count=len(paid),
    )


# ---------- Queries ----------

BILL_FILTERS = ("all", "pending", "overdue", "unpaid", "paid")


def filter_bills(dataset: Dataset, month=None, year: int | None = None, search: str = "",
                 kind: str = "all", collector_id: str | None = None, today: str | None = None) -> list[Bill]:
    names = {c.id: c.name.lower() for c in dataset.customers}
    month = utils.normalize_month(month) if month is not None else None
    needle = search.strip().lower()

    out = []
    for b in dataset.bills:
        if month is not None and b.month != month:
            continue
        if year is not None and b.year != int(year):
            continue
        if collector_id is not None and b.collector_id != collector_id:
            continue
        if needle and needle not in names.get(b.customer_id, "") and needle not in b.id.lower():
            continue
        if kind == "pending" and b.status != BillStatus.PENDING:
            continue
        if kind == "overdue" and not is_overdue(b, today):
            continue
        if kind == "unpaid" and b.status != BillStatus.UNPAID:
            continue
        if kind == "paid" and b.status != BillStatus.PAID:
            continue
        out.append(b)
    return out


def customer_history(dataset: Dataset, customer_id: str) -> list[Bill]:
    """Bills of one customer, newest period first."""
    bills = [b for b in dataset.bills if b.customer_id == customer_id]
    return sorted(bills, key=lambda b: (b.year, int(b.month)), reverse=True)


@dataclass(frozen=True)
class DashboardSummary:
    active_customers: int
    total_revenue: int
    overdue_count: int
    overdue_amount: int
    pending_count: int
    potential_monthly: int


def dashboard_summary(dataset: Dataset, today: str | None = None, collector_id: str | None = None) -> DashboardSummary:
    bills = dataset.bills if collector_id is None else tuple(bills_for_collector(dataset, collector_id))
    prices = {p.id: p.price for p in dataset.packages}
    active = [c for c in dataset.customers if c.status == CustomerStatus.ACTIVE]
    overdue = [b for b in bills if is_overdue(b, today)]
    return DashboardSummary(
        active_customers=len(active),
        total_revenue=sum(b.total_payable for b in bills if b.status == BillStatus.PAID),
        overdue_count=len(overdue),
        overdue_amount=sum(b.amount for b in overdue),
        pending_count=sum(1 for b in bills if b.status == BillStatus.PENDING),
        potential_monthly=sum(prices.get(c.package_id, 0) for c in active),
    )
