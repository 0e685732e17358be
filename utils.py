"""
utils.py
Validation, dates, money formatting, reminder links, exports.
"""

from __future__ import annotations

import secrets
import string
from datetime import date, datetime
from urllib.parse import quote

import pandas as pd

import config
from exceptions import InvalidPeriod

MONTH_LABELS = {
    "1": "Januari", "2": "Februari", "3": "Maret", "4": "April",
    "5": "Mei", "6": "Juni", "7": "Juli", "8": "Agustus",
    "9": "September", "10": "Oktober", "11": "November", "12": "Desember",
}

SHORT_MONTHS = ["Jan", "Feb", "Mar", "Apr", "Mei", "Jun", "Jul", "Agu", "Sep", "Okt", "Nov", "Des"]

_ID_ALPHABET = string.ascii_lowercase + string.digits


def today_iso() -> str:
    return date.today().isoformat()


def now_stamp() -> str:
    """Timestamp in the document's 'YYYY-MM-DD HH:MM:SS' form."""
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def parse_iso(d: str) -> date:
    return date.fromisoformat(d)


def normalize_month(month) -> str:
    try:
        m = int(month)
    except (TypeError, ValueError):
        raise InvalidPeriod(f"Month must be a number, got {month!r}")
    if not 1 <= m <= 12:
        raise InvalidPeriod(f"Month must be between 1 and 12, got {m}")
    return str(m)


def due_date(month: str, year: int, day: int = config.DUE_DAY) -> str:
    return f"{int(year)}-{int(month):02d}-{day:02d}"


def month_label(month: str) -> str:
    return MONTH_LABELS.get(str(month), str(month))


def format_idr(amount: int | float | None) -> str:
    """150000 -> 'Rp 150.000' (no decimals, dot thousands separator)."""
    value = int(round(amount or 0))
    sign = "-" if value < 0 else ""
    return f"{sign}Rp {abs(value):,}".replace(",", ".")


def digits(value: str) -> str:
    return "".join(ch for ch in (value or "") if ch.isdigit())


def new_id(length: int = 9, prefix: str = "", upper: bool = False) -> str:
    token = "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))
    return prefix + (token.upper() if upper else token)


def whatsapp_reminder_url(customer_name: str, phone: str, month: str, year: int,
                          amount: int, due: str, overdue: bool) -> str:
    greeting = "*PERINGATAN JATUH TEMPO*" if overdue else "*TAGIHAN WIFI*"
    if overdue:
        body = (
            f"Tagihan Anda saat ini sudah melewati batas jatuh tempo ({due}). "
            "Mohon segera lakukan pembayaran untuk menghindari pemutusan layanan."
        )
    else:
        body = f"Jatuh tempo pembayaran: {due}."
    message = (
        f"{greeting}\n\n"
        f"Halo Bapak/Ibu {customer_name},\n"
        f"Kami informasikan tagihan WiFi periode {month_label(month)} {year} sebesar *{format_idr(amount)}*.\n\n"
        f"{body}\n\n"
        "Terima kasih atas kerjasamanya."
    )
    return f"https://wa.me/{digits(phone)}?text={quote(message, safe='')}"


# ---------- Form validation ----------

def _is_int(value) -> bool:
    try:
        int(value)
    except (TypeError, ValueError):
        return False
    return True


def validate_customer_inputs(name: str, phone: str, address: str, package_id: str | None) -> list[str]:
    errors: list[str] = []
    if not name.strip():
        errors.append("Name is required.")
    if not digits(phone):
        errors.append("Phone must contain digits.")
    if not address.strip():
        errors.append("Address is required.")
    if not package_id:
        errors.append("Choose a package.")
    return errors


def validate_package_inputs(name: str, speed: str, price) -> list[str]:
    errors: list[str] = []
    if not name.strip():
        errors.append("Package name is required.")
    if not speed.strip():
        errors.append("Speed is required.")
    if not _is_int(price) or int(price) < 0:
        errors.append("Price must be a whole non-negative number.")
    return errors


def validate_collector_inputs(name: str, phone: str) -> list[str]:
    errors: list[str] = []
    if not name.strip():
        errors.append("Name is required.")
    if not digits(phone):
        errors.append("Phone must contain digits.")
    return errors


def validate_router_inputs(name: str, host: str, port, username: str) -> list[str]:
    errors: list[str] = []
    if not name.strip():
        errors.append("Router name is required.")
    if not host.strip():
        errors.append("Host is required.")
    if not _is_int(port) or not 0 < int(port) < 65536:
        errors.append("Port must be between 1 and 65535.")
    if not username.strip():
        errors.append("Username is required.")
    return errors


def validate_payment_account_inputs(provider_name: str, account_number: str, account_holder: str) -> list[str]:
    errors: list[str] = []
    if not provider_name.strip():
        errors.append("Provider name is required.")
    if not account_number.strip():
        errors.append("Account number is required.")
    if not account_holder.strip():
        errors.append("Account holder is required.")
    return errors


def validate_new_password(new1: str, new2: str, min_length: int = 6) -> list[str]:
    errors: list[str] = []
    if len(new1) < min_length:
        errors.append(f"Password must be at least {min_length} characters.")
    if new1 != new2:
        errors.append("Passwords do not match.")
    return errors


# ---------- Exports & summaries ----------

def customers_to_csv_bytes(dataset) -> bytes:
    packages = {p.id: p.name for p in dataset.packages}
    rows = [
        {
            "id": c.id,
            "name": c.name,
            "phone": c.phone,
            "address": c.address,
            "package": packages.get(c.package_id, ""),
            "status": c.status.value,
            "created_at": c.created_at,
        }
        for c in dataset.customers
    ]
    df = pd.DataFrame(rows, columns=["id", "name", "phone", "address", "package", "status", "created_at"])
    return df.to_csv(index=False).encode("utf-8")


def bills_to_csv_bytes(dataset, bills=None) -> bytes:
    names = {c.id: c.name for c in dataset.customers}
    rows = [
        {
            "id": b.id,
            "customer": names.get(b.customer_id, ""),
            "month": b.month,
            "year": b.year,
            "amount": b.amount,
            "penalty": b.penalty_amount or 0,
            "total": b.total_payable,
            "status": b.status.value,
            "due_date": b.due_date,
            "paid_at": b.paid_at or "",
            "payment_method": b.payment_method or "",
            "collector_id": b.collector_id or "",
        }
        for b in (dataset.bills if bills is None else bills)
    ]
    df = pd.DataFrame(rows, columns=[
        "id", "customer", "month", "year", "amount", "penalty", "total",
        "status", "due_date", "paid_at", "payment_method", "collector_id",
    ])
    return df.to_csv(index=False).encode("utf-8")


def revenue_by_month(bills, year: int | None = None) -> pd.DataFrame:
    """
    One row per calendar month: Paid totals (penalty included) and Unpaid
    totals (base amount), optionally restricted to one year.
    """
    frame = pd.DataFrame(
        [
            {
                "month": int(b.month),
                "status": b.status.value,
                "paid": b.total_payable if b.status.value == "Paid" else 0,
                "unpaid": b.amount if b.status.value == "Unpaid" else 0,
                "year": b.year,
            }
            for b in bills
        ],
        columns=["month", "status", "paid", "unpaid", "year"],
    )
    if year is not None:
        frame = frame[frame["year"] == year]
    summary = frame.groupby("month")[["paid", "unpaid"]].sum()
    summary = summary.reindex(range(1, 13), fill_value=0)
    summary.index = SHORT_MONTHS
    summary.index.name = "month"
    return summary.astype(int)
