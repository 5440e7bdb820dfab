"""Retry helper for read-settle-write cycles that lose an optimistic-lock race."""
from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError

from poultry_ledger.exceptions import ConcurrencyError

logger = logging.getLogger(__name__)


def run_with_retry(func, session, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on ConcurrencyError (version conflicts, already rolled back by
    the store) and OperationalError (deadlocks, lock timeouts). The whole
    callable is re-run, so it must re-read everything it depends on.
    """
    attempts = max(1, attempts)
    for attempt in range(attempts):
        try:
            return func()
        except (ConcurrencyError, OperationalError) as exc:
            session.rollback()
            if attempt >= attempts - 1:
                logger.warning(f"[RETRY] Giving up after {attempts} attempts: {exc}")
                if isinstance(exc, OperationalError):
                    raise ConcurrencyError() from exc
                raise
            delay = backoff_base * (2 ** attempt)
            logger.info(f"[RETRY] Attempt {attempt + 1}/{attempts} failed ({type(exc).__name__}); retrying in {delay}s")
            if delay > 0:
                time.sleep(delay)
