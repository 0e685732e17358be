"""
auth.py
Authentication utilities (bcrypt hashing, verify, login resolution for the
three roles, password changes).
bcrypt is called directly; stored values that are not bcrypt hashes are
legacy plaintext.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import bcrypt

import config
import registry
import utils
from models import Collector, Customer, Dataset

logger = logging.getLogger(__name__)


def _to_bcrypt_secret(password: str) -> bytes:
    """
    bcrypt only uses the first 72 BYTES of the password.
    We truncate to 72 bytes to avoid ValueError and to make behavior explicit.
    """
    pw = password.encode("utf-8")
    if len(pw) > 72:
        pw = pw[:72]
    return pw


def hash_password(password: str) -> str:
    """
    Returns a bcrypt hash as a UTF-8 string (stored in the document).
    """
    secret = _to_bcrypt_secret(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(secret, salt)
    return hashed.decode("utf-8")


def is_hashed(stored: str) -> bool:
    return stored.startswith(("$2a$", "$2b$", "$2y$"))


def verify_password(password: str, stored: str) -> bool:
    """
    Verify password against a stored value. Documents written before hashing
    was introduced hold plaintext, which is compared directly.
    """
    if not is_hashed(stored):
        return password == stored
    secret = _to_bcrypt_secret(password)
    return bcrypt.checkpw(secret, stored.encode("utf-8"))


# ---------- Sessions ----------

@dataclass(frozen=True)
class Session:
    """
    Session markers. At most one of the three is set at a time.
    """

    admin_logged_in: bool = False
    collector_id: str | None = None
    customer_id: str | None = None

    @property
    def role(self) -> str | None:
        if self.admin_logged_in:
            return "admin"
        if self.collector_id:
            return "collector"
        if self.customer_id:
            return "customer"
        return None


ANONYMOUS = Session()


def _collector_matches(c: Collector, username: str, password: str) -> bool:
    user_digits = utils.digits(username)
    is_match = (user_digits and utils.digits(c.phone) == user_digits) or c.id == username.upper()
    if not is_match:
        return False
    if c.password:
        return verify_password(password, c.password)
    return password == config.DEFAULT_COLLECTOR_PASSWORD


def _customer_matches(c: Customer, username: str, password: str) -> bool:
    user_digits = utils.digits(username)
    is_id_match = c.id.upper() == username.upper()
    is_phone_match = bool(user_digits) and utils.digits(c.phone) == user_digits
    if not is_id_match and not is_phone_match:
        return False
    if c.password:
        return verify_password(password, c.password)
    # No password set yet: the phone number doubles as the password
    return bool(utils.digits(password)) and utils.digits(c.phone) == utils.digits(password)


def login(dataset: Dataset, username: str, password: str) -> Session | None:
    """
    Resolve credentials against admin, then collectors, then customers.
    Returns the new Session or None when nothing matches.
    """
    username = username.strip()
    admin = dataset.admin_profile
    if username == admin.username and verify_password(password, admin.password or "admin123"):
        return Session(admin_logged_in=True)

    for c in dataset.collectors:
        if _collector_matches(c, username, password):
            return Session(collector_id=c.id)

    for c in dataset.customers:
        if _customer_matches(c, username, password):
            return Session(customer_id=c.id)

    logger.info("[AUTH] Login failed for %r", username)
    return None


def resolve_session(dataset: Dataset, session: Session) -> Session:
    """Drop markers that point at records which no longer exist."""
    if session.collector_id and dataset.find("collectors", session.collector_id) is None:
        return ANONYMOUS
    if session.customer_id and dataset.find("customers", session.customer_id) is None:
        return ANONYMOUS
    return session


# ---------- Password changes ----------

def change_admin_password(dataset: Dataset, new1: str, new2: str) -> tuple[Dataset, list[str]]:
    errors = utils.validate_new_password(new1, new2)
    if errors:
        return dataset, errors
    return registry.update_admin_profile(dataset, password=hash_password(new1), force_password_change=False), []


def change_customer_password(dataset: Dataset, customer_id: str, old: str, new1: str, new2: str) -> tuple[Dataset, list[str]]:
    customer = dataset.get("customers", customer_id)
    errors: list[str] = []
    if customer.password and not verify_password(old, customer.password):
        errors.append("Old password is wrong.")
    errors.extend(utils.validate_new_password(new1, new2))
    if errors:
        return dataset, errors
    return dataset.update("customers", customer_id, password=hash_password(new1)), []


def change_collector_password(dataset: Dataset, collector_id: str, new1: str, new2: str) -> tuple[Dataset, list[str]]:
    dataset.get("collectors", collector_id)
    errors = utils.validate_new_password(new1, new2)
    if errors:
        return dataset, errors
    return dataset.update("collectors", collector_id, password=hash_password(new1)), []
