import pytest

from db import LocalStore
from models import Bill, BillStatus, Customer, CustomerStatus, Dataset, Package, default_document


@pytest.fixture
def dataset():
    return Dataset.from_doc(default_document())


@pytest.fixture
def store(tmp_path):
    return LocalStore(db_file=tmp_path / "test.db", latency=0, seed=default_document())


@pytest.fixture
def small_dataset():
    """One Active customer on a 150000 package, nothing billed."""
    base = Dataset.from_doc(default_document())
    return Dataset(
        admin_profile=base.admin_profile,
        packages=(Package(id="P1", name="Basic", speed="10 Mbps", price=150000),),
        customers=(
            Customer(id="C1", name="Ani", phone="0811", address="Jl. A", package_id="P1",
                     status=CustomerStatus.ACTIVE, created_at="2025-01-01 00:00:00"),
        ),
    )


@pytest.fixture
def make_bill():
    def _make(bill_id="B1", status=BillStatus.UNPAID, amount=100000, **kwargs):
        values = dict(id=bill_id, customer_id="C1", month="11", year=2025, amount=amount,
                      status=status, due_date="2025-11-10")
        values.update(kwargs)
        return Bill(**values)
    return _make
