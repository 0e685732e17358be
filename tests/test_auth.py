from dataclasses import replace

import pytest

import auth
from exceptions import RecordNotFound
from models import Collector, CollectorStatus


@pytest.fixture
def with_collector(dataset):
    collector = Collector(id="COLAB12", name="Joko", phone="0812-3456", status=CollectorStatus.ACTIVE,
                          joined_at="2025-01-01")
    return dataset.insert("collectors", collector)


def test_hash_and_verify():
    hashed = auth.hash_password("rahasia123")

    assert auth.is_hashed(hashed)
    assert auth.verify_password("rahasia123", hashed)
    assert not auth.verify_password("wrong", hashed)


def test_verify_accepts_plaintext_legacy_values():
    assert auth.verify_password("admin123", "admin123")
    assert not auth.verify_password("admin124", "admin123")


def test_long_passwords_are_truncated_to_72_bytes():
    hashed = auth.hash_password("a" * 80)

    assert auth.verify_password("a" * 72 + "different", hashed)


def test_admin_login(dataset):
    session = auth.login(dataset, "admin", "admin123")

    assert session == auth.Session(admin_logged_in=True)
    assert session.role == "admin"
    assert auth.login(dataset, "admin", "nope") is None


def test_admin_login_with_hashed_password(dataset):
    ds = replace(dataset, admin_profile=replace(dataset.admin_profile, password=auth.hash_password("s3cret!")))

    assert auth.login(ds, "admin", "s3cret!").role == "admin"
    assert auth.login(ds, "admin", "admin123") is None


def test_collector_login_by_phone_or_id_with_default_password(with_collector):
    assert auth.login(with_collector, "08123456", "123456") == auth.Session(collector_id="COLAB12")
    assert auth.login(with_collector, "colab12", "123456").role == "collector"
    assert auth.login(with_collector, "08123456", "654321") is None


def test_collector_login_with_own_password(with_collector):
    ds = with_collector.update("collectors", "COLAB12", password=auth.hash_password("kolektor1"))

    assert auth.login(ds, "COLAB12", "kolektor1").collector_id == "COLAB12"
    assert auth.login(ds, "COLAB12", "123456") is None


def test_customer_login(dataset):
    # CUST001 has plaintext "123" in the seed, CUST002 has no password
    assert auth.login(dataset, "cust001", "123") == auth.Session(customer_id="CUST001")
    assert auth.login(dataset, "081234567890", "123").customer_id == "CUST001"
    assert auth.login(dataset, "CUST002", "089876543210").customer_id == "CUST002"
    assert auth.login(dataset, "CUST002", "wrong") is None


def test_unknown_user(dataset):
    assert auth.login(dataset, "ghost", "x") is None


def test_resolve_session_drops_deleted_records(dataset):
    assert auth.resolve_session(dataset, auth.Session(customer_id="CUST001")).customer_id == "CUST001"
    assert auth.resolve_session(dataset, auth.Session(customer_id="GONE")) == auth.ANONYMOUS
    assert auth.resolve_session(dataset, auth.Session(collector_id="GONE")) == auth.ANONYMOUS
    assert auth.ANONYMOUS.role is None


def test_change_admin_password_clears_force_flag(dataset):
    assert dataset.admin_profile.force_password_change

    ds, errors = auth.change_admin_password(dataset, "newpass1", "newpass1")

    assert errors == []
    assert not ds.admin_profile.force_password_change
    assert auth.verify_password("newpass1", ds.admin_profile.password)


def test_change_admin_password_validation(dataset):
    ds, errors = auth.change_admin_password(dataset, "abc", "abd")

    assert ds is dataset
    assert errors == ["Password must be at least 6 characters.", "Passwords do not match."]


def test_change_customer_password_checks_old_one(dataset):
    ds, errors = auth.change_customer_password(dataset, "CUST001", "bad", "newpass1", "newpass1")
    assert errors == ["Old password is wrong."]
    assert ds is dataset

    ds, errors = auth.change_customer_password(dataset, "CUST001", "123", "newpass1", "newpass1")
    assert errors == []
    assert auth.login(ds, "CUST001", "newpass1").customer_id == "CUST001"


def test_change_customer_password_without_existing_one(dataset):
    ds, errors = auth.change_customer_password(dataset, "CUST002", "", "newpass1", "newpass1")

    assert errors == []
    assert auth.login(ds, "CUST002", "089876543210") is None


def test_change_collector_password(with_collector):
    ds, errors = auth.change_collector_password(with_collector, "COLAB12", "kolektor1", "kolektor2")
    assert errors == ["Passwords do not match."]
    assert ds is with_collector

    ds, errors = auth.change_collector_password(with_collector, "COLAB12", "kolektor1", "kolektor1")
    assert errors == []
    assert auth.login(ds, "COLAB12", "kolektor1").collector_id == "COLAB12"

    with pytest.raises(RecordNotFound):
        auth.change_collector_password(with_collector, "NOPE", "x", "x")


def test_collector_password_needs_minimum_length(with_collector):
    ds, errors = auth.change_collector_password(with_collector, "COLAB12", "a", "a")
    assert errors == ["Password must be at least 6 characters."]
    assert ds.get("collectors", "COLAB12").password is None

    ds, errors = auth.change_collector_password(with_collector, "COLAB12", "", "")
    assert errors == ["Password must be at least 6 characters."]
    assert auth.login(ds, "COLAB12", "123456").collector_id == "COLAB12"
