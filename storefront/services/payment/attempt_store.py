"""
Payment Attempt Store
Holds in-progress payment attempts for the lifetime of a checkout
"""
import os
import logging
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple
from dotenv import load_dotenv

from storefront.services.payment.orchestrator import PaymentSubmissionOrchestrator

load_dotenv()

logger = logging.getLogger(__name__)


class PaymentAttemptStore:
    """
    In-process store of orchestrators keyed by attempt id.

    Attempts are never persisted; an abandoned attempt simply expires.
    Attempts that are mid-submission are never evicted.
    """

    def __init__(self, ttl_minutes: Optional[int] = None):
        minutes = ttl_minutes or int(os.getenv("PAYMENT_ATTEMPT_TTL_MINUTES", "60"))
        self._ttl = timedelta(minutes=minutes)
        self._attempts: Dict[str, Tuple[PaymentSubmissionOrchestrator, datetime]] = {}

    def add(self, attempt: PaymentSubmissionOrchestrator):
        self.evict_expired()
        self._attempts[attempt.attempt_id] = (attempt, datetime.utcnow())

    def get(self, attempt_id: str) -> Optional[PaymentSubmissionOrchestrator]:
        entry = self._attempts.get(attempt_id)
        if entry is None:
            return None
        attempt, touched_at = entry
        if self._is_expired(attempt, touched_at):
            del self._attempts[attempt_id]
            return None
        self._attempts[attempt_id] = (attempt, datetime.utcnow())
        return attempt

    def discard(self, attempt_id: str):
        self._attempts.pop(attempt_id, None)

    def evict_expired(self) -> int:
        expired = [
            attempt_id for attempt_id, (attempt, touched_at) in self._attempts.items()
            if self._is_expired(attempt, touched_at)
        ]
        for attempt_id in expired:
            del self._attempts[attempt_id]
        if expired:
            logger.info(f"Evicted {len(expired)} abandoned payment attempts")
        return len(expired)

    def __len__(self) -> int:
        return len(self._attempts)

    def _is_expired(self, attempt: PaymentSubmissionOrchestrator, touched_at: datetime) -> bool:
        return not attempt.is_busy and datetime.utcnow() - touched_at > self._ttl


# Process-wide store used by the checkout routes
attempt_store = PaymentAttemptStore()
