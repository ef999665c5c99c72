"""Ledger transaction helper shared by the mutating services."""

import logging
from contextlib import contextmanager
from typing import Iterator

import psycopg2
import psycopg2.pool

from clients.postgres_client import PostgresClient, Transaction
from core.exceptions import DependencyError

logger = logging.getLogger(__name__)


@contextmanager
def ledger_transaction(postgres: PostgresClient) -> Iterator[Transaction]:
    """
    Open a transaction for one ledger mutation.

    Lost connections and pool exhaustion become DependencyError after the
    rollback, so callers always see a ledger error kind. Ledger errors
    raised inside the block pass through unchanged.
    """
    try:
        with postgres.transaction() as tx:
            yield tx
    except (psycopg2.OperationalError, psycopg2.InterfaceError, psycopg2.pool.PoolError) as e:
        logger.error("Ledger transaction failed: %s", e)
        raise DependencyError("Ledger database unavailable") from e
