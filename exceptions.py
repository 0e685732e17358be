"""
exceptions.py
Error taxonomy for billing and registry reducers. The UI catches
BillingError and shows its message.
"""


class BillingError(Exception):
    """Base class for errors raised by billing and registry operations."""
    pass


class RecordNotFound(BillingError):
    """Raised when a record id does not exist in its table."""

    def __init__(self, table: str, record_id: str):
        self.table = table
        self.record_id = record_id
        super().__init__(f"{table}: no record with id {record_id!r}")


class InvalidTransition(BillingError):
    """Raised when a bill cannot move from its current status to the requested one."""
    pass


class InvalidPenalty(BillingError):
    """Raised when a penalty would lower the total payable of a bill."""
    pass


class InvalidPeriod(BillingError):
    """Raised when a billing month/year is out of range."""
    pass
