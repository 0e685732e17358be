import re

import pytest

import registry
from exceptions import RecordNotFound
from models import CollectorStatus, CustomerStatus, PaymentGatewayConfig, GatewayProvider, PaymentType, RouterStatus


def test_add_customer(dataset):
    ds, customer = registry.add_customer(dataset, "  Dewi  ", "0813", "Jl. B", "PKG002")

    assert re.fullmatch(r"[A-Z0-9]{6}", customer.id)
    assert customer.name == "Dewi"
    assert customer.status == CustomerStatus.ACTIVE
    assert re.fullmatch(r"\d{4}-\d\d-\d\d \d\d:\d\d:\d\d", customer.created_at)
    assert ds.get("customers", customer.id) == customer
    assert len(dataset.customers) == 3


def test_update_customer_coerces_status(dataset):
    ds = registry.update_customer(dataset, "CUST003", status="Active", address="Jl. Baru")
    customer = ds.get("customers", "CUST003")

    assert customer.status == CustomerStatus.ACTIVE
    assert customer.address == "Jl. Baru"
    with pytest.raises(RecordNotFound):
        registry.update_customer(dataset, "NOPE", name="x")


def test_bulk_set_customer_status(dataset):
    ds = registry.bulk_set_customer_status(dataset, ["CUST002", "CUST003", "GHOST"], "Suspended")

    assert [c.status for c in ds.customers] == [CustomerStatus.ACTIVE, CustomerStatus.SUSPENDED,
                                                CustomerStatus.SUSPENDED]


def test_delete_customer_keeps_bills(dataset):
    ds = registry.delete_customer(dataset, "CUST001")

    assert ds.find("customers", "CUST001") is None
    assert {b.id for b in ds.bills if b.customer_id == "CUST001"} == {"BILL001", "BILL003"}


def test_search_customers(dataset):
    assert [c.id for c in registry.search_customers(dataset, "siti")] == ["CUST002"]
    assert [c.id for c in registry.search_customers(dataset, "0856")] == ["CUST003"]
    assert [c.id for c in registry.search_customers(dataset, "cust00")] == ["CUST001", "CUST002", "CUST003"]
    assert [c.id for c in registry.search_customers(dataset, "", "Active")] == ["CUST001"]


def test_package_crud(dataset):
    ds, package = registry.add_package(dataset, "Paket Kilat", "50 Mbps", "300000", "Cepat")
    assert package.price == 300000
    assert re.fullmatch(r"[a-z0-9]{9}", package.id)

    ds = registry.update_package(ds, package.id, price="350000")
    assert ds.get("packages", package.id).price == 350000

    ds = registry.delete_package(ds, "PKG001")
    assert ds.find("packages", "PKG001") is None
    # customers on the deleted package keep the dangling reference
    assert ds.get("customers", "CUST001").package_id == "PKG001"


def test_collector_crud(dataset):
    ds, collector = registry.add_collector(dataset, "Joko", "0812", "")

    assert re.fullmatch(r"COL[A-Z0-9]{4}", collector.id)
    assert collector.password is None
    assert collector.status == CollectorStatus.ACTIVE

    ds = registry.update_collector(ds, collector.id, status="Inactive")
    assert ds.get("collectors", collector.id).status == CollectorStatus.INACTIVE

    ds = registry.delete_collector(ds, collector.id)
    assert ds.collectors == ()


def test_router_crud(dataset):
    ds, router = registry.add_router(dataset, "Cabang", "10.0.0.1", "api", "8729", "pw")

    assert router.status == RouterStatus.OFFLINE
    assert router.port == 8729

    ds = registry.update_router(ds, router.id, status="Online", port="8728")
    assert ds.get("routers", router.id).status == RouterStatus.ONLINE
    assert ds.get("routers", router.id).port == 8728

    ds = registry.delete_router(ds, router.id)
    assert [r.id for r in ds.routers] == ["RTR001"]


def test_payment_account_crud(dataset):
    ds, account = registry.add_payment_account(dataset, "QRIS", "GoPay", "0812", "WIFINET")
    assert account.type == PaymentType.QRIS

    ds = registry.update_payment_account(ds, account.id, type="BANK", provider_name="BRI")
    assert ds.get("payment_accounts", account.id).type == PaymentType.BANK

    ds = registry.delete_payment_account(ds, "ACC001")
    assert [a.id for a in ds.payment_accounts] == ["ACC002", account.id]


def test_gateway_and_admin_profile(dataset):
    gateway = PaymentGatewayConfig(provider=GatewayProvider.MIDTRANS, is_active=True, merchant_id="M-1")
    ds = registry.update_gateway_config(dataset, gateway)
    assert ds.gateway_config == gateway

    ds = registry.update_admin_profile(ds, business_name="NetKu", billing_day=31)
    assert ds.admin_profile.business_name == "NetKu"
    assert ds.admin_profile.billing_day == 28
    assert registry.update_admin_profile(ds, billing_day=0).admin_profile.billing_day == 1
