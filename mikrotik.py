"""
mikrotik.py
Router connection tests and customer user sync. Real RouterOS API calls are
out of scope: the app talks to an injected RouterClient, and the simulated
client below is a placeholder for one.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Protocol

import utils
from models import Dataset, MikrotikUser, Router, RouterStatus

logger = logging.getLogger(__name__)


class RouterClient(Protocol):
    def test_connection(self, router: Router) -> bool: ...

    def push_user(self, router: Router, user: MikrotikUser) -> bool: ...


class SimulatedRouterClient:
    """
    Placeholder client. With `outcome` set every call returns it; otherwise
    calls succeed with probability `success_rate` drawn from `rng`.
    """

    def __init__(self, success_rate: float = 0.7, rng: random.Random | None = None, outcome: bool | None = None):
        self.success_rate = success_rate
        self.rng = rng or random.Random()
        self.outcome = outcome

    def _roll(self) -> bool:
        if self.outcome is not None:
            return self.outcome
        return self.rng.random() < self.success_rate

    def test_connection(self, router: Router) -> bool:
        return self._roll()

    def push_user(self, router: Router, user: MikrotikUser) -> bool:
        return self._roll()


@dataclass(frozen=True)
class SyncResult:
    ok: bool
    message: str


def test_router(dataset: Dataset, router_id: str, client: RouterClient) -> tuple[Dataset, SyncResult]:
    router = dataset.get("routers", router_id)
    ok = client.test_connection(router)
    status = RouterStatus.ONLINE if ok else RouterStatus.OFFLINE
    logger.info("[MIKROTIK] Router %s (%s:%s) is %s", router.name, router.host, router.port, status.value)
    return dataset.update("routers", router_id, status=status), SyncResult(ok, status.value)


def sync_customer(dataset: Dataset, customer_id: str, router_id: str, client: RouterClient,
                  now: str | None = None) -> tuple[Dataset, SyncResult]:
    """
    Push one customer to a router as a user. Failure leaves the dataset as is.
    """
    customer = dataset.get("customers", customer_id)
    router = dataset.get("routers", router_id)
    package = dataset.find("packages", customer.package_id)
    user = MikrotikUser(
        id=utils.new_id(),
        customer_id=customer.id,
        router_id=router.id,
        username=customer.id.lower(),
        profile=package.name if package else "default",
        enabled=True,
        last_synced=now or utils.now_stamp(),
    )

    if not client.push_user(router, user):
        logger.warning("[MIKROTIK] Sync of %s to %s failed", customer.id, router.name)
        return dataset, SyncResult(False, "Connection Timeout")

    # One user per (customer, router): a resync replaces the previous entry
    stale = [u.id for u in dataset.mikrotik_users if u.customer_id == customer.id and u.router_id == router.id]
    dataset = dataset.remove("mikrotik_users", stale).insert("mikrotik_users", user)
    logger.info("[MIKROTIK] Synced %s to %s", customer.id, router.name)
    return dataset, SyncResult(True, "Synced")


def remove_user(dataset: Dataset, user_id: str) -> Dataset:
    return dataset.remove("mikrotik_users", [user_id])
