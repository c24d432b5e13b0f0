from datetime import datetime, timedelta

from storefront.services.payment.attempt_store import PaymentAttemptStore
from storefront.services.payment.orchestrator import PaymentSubmissionOrchestrator
from tests.fakes import FakeBackend, make_session


def make_attempt(attempt_id):
    return PaymentSubmissionOrchestrator(make_session(), FakeBackend(), attempt_id=attempt_id)


def age(store, attempt_id, minutes):
    attempt, _ = store._attempts[attempt_id]
    store._attempts[attempt_id] = (attempt, datetime.utcnow() - timedelta(minutes=minutes))


def test_add_and_get():
    store = PaymentAttemptStore(ttl_minutes=30)
    attempt = make_attempt("PAY_1")

    store.add(attempt)

    assert store.get("PAY_1") is attempt
    assert store.get("PAY_MISSING") is None
    assert len(store) == 1


def test_stale_attempt_expires():
    store = PaymentAttemptStore(ttl_minutes=30)
    store.add(make_attempt("PAY_1"))
    age(store, "PAY_1", 31)

    assert store.get("PAY_1") is None
    assert len(store) == 0


def test_busy_attempt_is_never_evicted():
    store = PaymentAttemptStore(ttl_minutes=30)
    attempt = make_attempt("PAY_1")
    store.add(attempt)
    age(store, "PAY_1", 120)
    attempt._busy = True

    assert store.evict_expired() == 0
    assert store.get("PAY_1") is attempt


def test_evict_expired_keeps_fresh_attempts():
    store = PaymentAttemptStore(ttl_minutes=30)
    store.add(make_attempt("PAY_OLD"))
    store.add(make_attempt("PAY_NEW"))
    age(store, "PAY_OLD", 45)

    assert store.evict_expired() == 1
    assert store.get("PAY_NEW") is not None


def test_discard():
    store = PaymentAttemptStore(ttl_minutes=30)
    store.add(make_attempt("PAY_1"))

    store.discard("PAY_1")
    store.discard("PAY_1")

    assert store.get("PAY_1") is None
