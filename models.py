"""
models.py
Domain records, the Dataset state object, and document (de)serialization.
"""

from __future__ import annotations

import copy
import typing
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Callable

from exceptions import RecordNotFound


class CustomerStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    SUSPENDED = "Suspended"


class BillStatus(str, Enum):
    UNPAID = "Unpaid"
    PENDING = "Pending"
    PAID = "Paid"


class CollectorStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class RouterStatus(str, Enum):
    ONLINE = "Online"
    OFFLINE = "Offline"
    TESTING = "Testing"


class PaymentType(str, Enum):
    BANK = "BANK"
    E_WALLET = "E-WALLET"
    QRIS = "QRIS"


class GatewayProvider(str, Enum):
    MANUAL = "MANUAL"
    MIDTRANS = "MIDTRANS"
    XENDIT = "XENDIT"


@dataclass(frozen=True)
class Package:
    id: str
    name: str
    speed: str
    price: int
    description: str = ""


@dataclass(frozen=True)
class Customer:
    id: str
    name: str
    phone: str
    address: str
    package_id: str
    status: CustomerStatus
    created_at: str
    password: str | None = None


@dataclass(frozen=True)
class Bill:
    id: str
    customer_id: str
    month: str  # "1".."12", never zero-padded
    year: int
    amount: int  # package price frozen at generation time
    status: BillStatus
    due_date: str
    penalty_amount: int | None = None
    paid_at: str | None = None
    payment_method: str | None = None
    collector_id: str | None = None

    @property
    def total_payable(self) -> int:
        return self.amount + (self.penalty_amount or 0)


@dataclass(frozen=True)
class Collector:
    id: str
    name: str
    phone: str
    status: CollectorStatus
    joined_at: str
    password: str | None = None


@dataclass(frozen=True)
class Router:
    id: str
    name: str
    host: str
    username: str
    port: int = 8728
    password: str | None = None
    status: RouterStatus = RouterStatus.OFFLINE


@dataclass(frozen=True)
class MikrotikUser:
    id: str
    customer_id: str
    router_id: str
    username: str
    profile: str
    enabled: bool
    last_synced: str


@dataclass(frozen=True)
class PaymentAccount:
    id: str
    type: PaymentType
    provider_name: str
    account_number: str
    account_holder: str


@dataclass(frozen=True)
class AdminProfile:
    name: str
    business_name: str
    username: str
    password: str | None = None
    auto_billing_enabled: bool = True
    billing_day: int = 1
    force_password_change: bool = False


@dataclass(frozen=True)
class PaymentGatewayConfig:
    provider: GatewayProvider = GatewayProvider.MANUAL
    is_active: bool = False
    is_sandbox: bool = True
    merchant_id: str | None = None
    client_key: str | None = None
    server_key: str | None = None


# ---------- Document mapping ----------

def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _unwrap_optional(hint):
    args = [a for a in typing.get_args(hint) if a is not type(None)]
    if args and type(None) in typing.get_args(hint):
        return args[0]
    return hint


def _coerce(hint, value):
    if value is None:
        return None
    hint = _unwrap_optional(hint)
    if isinstance(hint, type) and issubclass(hint, Enum):
        return hint(value)
    if hint is bool:
        return bool(value)
    if hint is int:
        return int(value)
    if hint is str:
        return str(value)
    return value


def record_to_doc(record) -> dict:
    out = {}
    for f in fields(record):
        value = getattr(record, f.name)
        if value is None:
            continue
        if isinstance(value, Enum):
            value = value.value
        out[_camel(f.name)] = value
    return out


def record_from_doc(cls, doc: dict):
    hints = typing.get_type_hints(cls)
    kwargs = {}
    for f in fields(cls):
        key = _camel(f.name)
        if key in doc:
            kwargs[f.name] = _coerce(hints[f.name], doc[key])
    if cls is Bill and "month" in kwargs:
        kwargs["month"] = str(int(kwargs["month"]))
    return cls(**kwargs)


# Document table name -> (Dataset attribute, record class)
TABLES: dict[str, tuple[str, type]] = {
    "customers": ("customers", Customer),
    "packages": ("packages", Package),
    "bills": ("bills", Bill),
    "collectors": ("collectors", Collector),
    "routers": ("routers", Router),
    "mikrotikUsers": ("mikrotik_users", MikrotikUser),
    "paymentAccounts": ("payment_accounts", PaymentAccount),
}

SINGLETONS = ("adminProfile", "gatewayConfig")

_ATTR_TO_TABLE = {attr: table for table, (attr, _) in TABLES.items()}


@dataclass(frozen=True)
class Dataset:
    """
    Whole application state. Reducers take a Dataset and return a new one;
    an instance is never mutated.
    """

    admin_profile: AdminProfile
    gateway_config: PaymentGatewayConfig = field(default_factory=PaymentGatewayConfig)
    customers: tuple[Customer, ...] = ()
    packages: tuple[Package, ...] = ()
    bills: tuple[Bill, ...] = ()
    collectors: tuple[Collector, ...] = ()
    routers: tuple[Router, ...] = ()
    mikrotik_users: tuple[MikrotikUser, ...] = ()
    payment_accounts: tuple[PaymentAccount, ...] = ()

    @classmethod
    def from_doc(cls, doc: dict) -> "Dataset":
        tables = {}
        for table, (attr, record_cls) in TABLES.items():
            tables[attr] = tuple(record_from_doc(record_cls, r) for r in doc.get(table) or [])
        admin = record_from_doc(AdminProfile, doc.get("adminProfile") or DEFAULT_ADMIN)
        gateway = record_from_doc(PaymentGatewayConfig, doc.get("gatewayConfig") or {})
        return cls(admin_profile=admin, gateway_config=gateway, **tables)

    def to_doc(self) -> dict:
        doc = {table: [record_to_doc(r) for r in getattr(self, attr)] for table, (attr, _) in TABLES.items()}
        doc["adminProfile"] = record_to_doc(self.admin_profile)
        doc["gatewayConfig"] = record_to_doc(self.gateway_config)
        return doc

    # ---------- generic table helpers ----------

    def find(self, attr: str, record_id: str):
        return next((r for r in getattr(self, attr) if r.id == record_id), None)

    def get(self, attr: str, record_id: str):
        record = self.find(attr, record_id)
        if record is None:
            raise RecordNotFound(_ATTR_TO_TABLE[attr], record_id)
        return record

    def insert(self, attr: str, record) -> "Dataset":
        return replace(self, **{attr: getattr(self, attr) + (record,)})

    def update(self, attr: str, record_id: str, **changes) -> "Dataset":
        self.get(attr, record_id)
        rows = tuple(replace(r, **changes) if r.id == record_id else r for r in getattr(self, attr))
        return replace(self, **{attr: rows})

    def remove(self, attr: str, ids) -> "Dataset":
        ids = set(ids)
        return replace(self, **{attr: tuple(r for r in getattr(self, attr) if r.id not in ids)})


# ---------- Seed data ----------

DEFAULT_ADMIN = {
    "name": "Super Admin",
    "businessName": "WIFINET",
    "username": "admin",
    "password": "admin123",
    "autoBillingEnabled": True,
    "billingDay": 1,
    "forcePasswordChange": True,
}

_DEFAULT_DATA = {
    "adminProfile": DEFAULT_ADMIN,
    "customers": [
        {"id": "CUST001", "name": "Budi Santoso", "phone": "081234567890", "address": "Jl. Mawar No. 10",
         "packageId": "PKG001", "status": "Active", "createdAt": "2024-01-01 10:00:00", "password": "123"},
        {"id": "CUST002", "name": "Siti Aminah", "phone": "089876543210", "address": "Jl. Melati No. 5",
         "packageId": "PKG002", "status": "Suspended", "createdAt": "2024-01-05 14:30:00"},
        {"id": "CUST003", "name": "Rudi Hartono", "phone": "085678901234", "address": "Jl. Kamboja No. 3",
         "packageId": "PKG001", "status": "Inactive", "createdAt": "2024-02-10 09:15:00"},
    ],
    "packages": [
        {"id": "PKG001", "name": "Paket Hemat", "speed": "10 Mbps", "price": 150000,
         "description": "Cocok untuk browsing dan sosial media"},
        {"id": "PKG002", "name": "Paket Gamer", "speed": "30 Mbps", "price": 250000,
         "description": "Stabil untuk gaming dan streaming HD"},
        {"id": "PKG003", "name": "Paket Sultan", "speed": "100 Mbps", "price": 500000,
         "description": "Kecepatan maksimal untuk seluruh keluarga"},
    ],
    "bills": [
        {"id": "BILL001", "customerId": "CUST001", "month": "10", "year": 2024, "amount": 150000,
         "status": "Paid", "dueDate": "2024-10-10"},
        {"id": "BILL002", "customerId": "CUST002", "month": "10", "year": 2024, "amount": 250000,
         "status": "Unpaid", "dueDate": "2024-10-10"},
        {"id": "BILL003", "customerId": "CUST001", "month": "11", "year": 2024, "amount": 150000,
         "status": "Unpaid", "dueDate": "2024-11-10"},
    ],
    "collectors": [],
    "routers": [
        {"id": "RTR001", "name": "Mikrotik Utama", "host": "192.168.1.1", "port": 8728,
         "username": "admin", "status": "Online"},
    ],
    "mikrotikUsers": [],
    "paymentAccounts": [
        {"id": "ACC001", "type": "BANK", "providerName": "BCA", "accountNumber": "1234567890",
         "accountHolder": "WIFINET OFFICIAL"},
        {"id": "ACC002", "type": "E-WALLET", "providerName": "DANA", "accountNumber": "081234567890",
         "accountHolder": "WIFINET"},
    ],
    "gatewayConfig": {
        "provider": "MANUAL",
        "isActive": False,
        "merchantId": "",
        "clientKey": "",
        "serverKey": "",
        "isSandbox": True,
    },
}


def default_document(hasher: Callable[[str], str] | None = None) -> dict:
    """
    Fresh copy of the seed document. When `hasher` is given, seeded
    passwords are stored through it (bcrypt in the app).
    """
    doc = copy.deepcopy(_DEFAULT_DATA)
    if hasher is not None:
        doc["adminProfile"]["password"] = hasher(doc["adminProfile"]["password"])
        for customer in doc["customers"]:
            if customer.get("password"):
                customer["password"] = hasher(customer["password"])
    return doc
