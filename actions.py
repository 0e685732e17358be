"""
actions.py
Glue between the reducers and a store: each action loads the document,
applies one reducer and writes the result back inside one transaction.
"""

from __future__ import annotations

import logging
from datetime import date

import billing
from db import DocumentStore
from models import Dataset

logger = logging.getLogger(__name__)


def load(store: DocumentStore) -> Dataset:
    return Dataset.from_doc(store.load())


def run(store: DocumentStore, reducer, *args, **kwargs):
    """
    Apply `reducer(dataset, *args, **kwargs)` as one read-modify-write.
    The reducer returns a Dataset or a tuple whose first item is one; the
    reducer's return value is passed back unchanged. A raised error aborts
    the write.
    """
    with store.transaction() as doc:
        result = reducer(Dataset.from_doc(doc), *args, **kwargs)
        dataset = result[0] if isinstance(result, tuple) else result
        doc.clear()
        doc.update(dataset.to_doc())
    return result


def enter_admin_session(store: DocumentStore, today: date | None = None) -> list:
    """
    Session-entry auto-billing. The check and the insert share one
    transaction, so two sessions entering together cannot double-bill.
    """
    _, created = run(store, billing.auto_generate, today)
    if created:
        logger.info("[ACTIONS] Auto-billing created %d bill(s)", len(created))
    return created
