"""
registry.py
Customers, packages, collectors, routers, payment accounts and the two
singleton settings records. All functions are reducers over Dataset.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date

import utils
from models import (
    AdminProfile,
    Collector,
    CollectorStatus,
    Customer,
    CustomerStatus,
    Dataset,
    Package,
    PaymentAccount,
    PaymentGatewayConfig,
    PaymentType,
    Router,
    RouterStatus,
)


# ---------- Customers ----------

def add_customer(dataset: Dataset, name: str, phone: str, address: str, package_id: str,
                 status: CustomerStatus = CustomerStatus.ACTIVE, password: str | None = None) -> tuple[Dataset, Customer]:
    customer = Customer(
        id=utils.new_id(6, upper=True),
        name=name.strip(),
        phone=phone.strip(),
        address=address.strip(),
        package_id=package_id,
        status=CustomerStatus(status),
        created_at=utils.now_stamp(),
        password=password,
    )
    return dataset.insert("customers", customer), customer


def update_customer(dataset: Dataset, customer_id: str, **changes) -> Dataset:
    if "status" in changes:
        changes["status"] = CustomerStatus(changes["status"])
    return dataset.update("customers", customer_id, **changes)


def bulk_set_customer_status(dataset: Dataset, ids, status: CustomerStatus) -> Dataset:
    wanted = set(ids)
    status = CustomerStatus(status)
    rows = tuple(replace(c, status=status) if c.id in wanted else c for c in dataset.customers)
    return replace(dataset, customers=rows)


def delete_customer(dataset: Dataset, customer_id: str) -> Dataset:
    """Removes the customer only; their bills stay as history."""
    return dataset.remove("customers", [customer_id])


def search_customers(dataset: Dataset, term: str = "", status: str = "All") -> list[Customer]:
    needle = term.strip().lower()
    out = []
    for c in dataset.customers:
        if status != "All" and c.status.value != status:
            continue
        if needle and needle not in c.name.lower() and needle not in c.id.lower() and term.strip() not in c.phone:
            continue
        out.append(c)
    return out


# ---------- Packages ----------

def add_package(dataset: Dataset, name: str, speed: str, price: int, description: str = "") -> tuple[Dataset, Package]:
    package = Package(id=utils.new_id(), name=name.strip(), speed=speed.strip(), price=int(price),
                      description=description.strip())
    return dataset.insert("packages", package), package


def update_package(dataset: Dataset, package_id: str, **changes) -> Dataset:
    """Price edits do not touch existing bills; their amount is frozen."""
    if "price" in changes:
        changes["price"] = int(changes["price"])
    return dataset.update("packages", package_id, **changes)


def delete_package(dataset: Dataset, package_id: str) -> Dataset:
    # Customers referencing it keep a dangling package_id
    return dataset.remove("packages", [package_id])


# ---------- Collectors ----------

def add_collector(dataset: Dataset, name: str, phone: str, password: str | None = None,
                  status: CollectorStatus = CollectorStatus.ACTIVE) -> tuple[Dataset, Collector]:
    collector = Collector(
        id=utils.new_id(4, prefix="COL", upper=True),
        name=name.strip(),
        phone=phone.strip(),
        status=CollectorStatus(status),
        joined_at=date.today().isoformat(),
        password=password or None,
    )
    return dataset.insert("collectors", collector), collector


def update_collector(dataset: Dataset, collector_id: str, **changes) -> Dataset:
    if "status" in changes:
        changes["status"] = CollectorStatus(changes["status"])
    return dataset.update("collectors", collector_id, **changes)


def delete_collector(dataset: Dataset, collector_id: str) -> Dataset:
    # Bills keep their collector_id; the relation is lookup-only
    return dataset.remove("collectors", [collector_id])


# ---------- Routers ----------

def add_router(dataset: Dataset, name: str, host: str, username: str, port: int = 8728,
               password: str | None = None) -> tuple[Dataset, Router]:
    router = Router(id=utils.new_id(), name=name.strip(), host=host.strip(), username=username.strip(),
                    port=int(port), password=password or None, status=RouterStatus.OFFLINE)
    return dataset.insert("routers", router), router


def update_router(dataset: Dataset, router_id: str, **changes) -> Dataset:
    if "status" in changes:
        changes["status"] = RouterStatus(changes["status"])
    if "port" in changes:
        changes["port"] = int(changes["port"])
    return dataset.update("routers", router_id, **changes)


def delete_router(dataset: Dataset, router_id: str) -> Dataset:
    return dataset.remove("routers", [router_id])


# ---------- Payment settings ----------

def add_payment_account(dataset: Dataset, type: PaymentType, provider_name: str, account_number: str,
                        account_holder: str) -> tuple[Dataset, PaymentAccount]:
    account = PaymentAccount(id=utils.new_id(), type=PaymentType(type), provider_name=provider_name.strip(),
                             account_number=account_number.strip(), account_holder=account_holder.strip())
    return dataset.insert("payment_accounts", account), account


def update_payment_account(dataset: Dataset, account_id: str, **changes) -> Dataset:
    if "type" in changes:
        changes["type"] = PaymentType(changes["type"])
    return dataset.update("payment_accounts", account_id, **changes)


def delete_payment_account(dataset: Dataset, account_id: str) -> Dataset:
    return dataset.remove("payment_accounts", [account_id])


def update_gateway_config(dataset: Dataset, gateway: PaymentGatewayConfig) -> Dataset:
    return replace(dataset, gateway_config=gateway)


# ---------- Admin profile ----------

def update_admin_profile(dataset: Dataset, **changes) -> Dataset:
    if "billing_day" in changes:
        changes["billing_day"] = min(28, max(1, int(changes["billing_day"])))
    profile: AdminProfile = replace(dataset.admin_profile, **changes)
    return replace(dataset, admin_profile=profile)
