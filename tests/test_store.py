"""Guarded transitions and notification stamping against a real SQLite store."""

from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy.exc import OperationalError

from ukprofit.common.db import Base, create_db_engine, make_session_factory
from ukprofit.common.state_machine import AWAITING_PAYMENT, DRAFT, PAID
from ukprofit.services.written_requests.store import PaymentDetails, StoreUnavailableError, WrittenRequestStore


def test_create_starts_in_draft(store):
    """New requests are drafts with padded questions and no correlation ids."""

    row = store.create(["a", "b"], guest_email="g@example.com", calculator_snapshot={"vat": 20})
    loaded = store.get(row.id)
    assert loaded.status == DRAFT
    assert loaded.questions == ["a", "b"]
    assert loaded.question_3 == ""
    assert loaded.calculator_snapshot == {"vat": 20}
    assert loaded.stripe_session_id is None


def test_attach_checkout_session_opens_for_payment(store):
    row = store.create(["a", "b", "c"])
    assert store.attach_checkout_session(row.id, "cs_1") is True
    loaded = store.get(row.id)
    assert loaded.status == AWAITING_PAYMENT
    assert loaded.stripe_session_id == "cs_1"
    # Second attach finds no draft row.
    assert store.attach_checkout_session(row.id, "cs_2") is False
    assert store.get(row.id).stripe_session_id == "cs_1"


def test_mark_paid_only_from_awaiting_payment(store, add_request):
    """The conditional update affects a row exactly once."""

    add_request("R1", status=AWAITING_PAYMENT)
    details = PaymentDetails(stripe_session_id="cs_1", payment_intent_id="pi_1", amount_paid_pence=3900, currency="GBP")

    assert store.mark_paid("R1", details) is True
    assert store.mark_paid("R1", details) is False

    loaded = store.get("R1")
    assert loaded.status == PAID
    assert loaded.is_paid
    assert loaded.paid_at is not None
    assert loaded.payment_intent_id == "pi_1"
    assert loaded.amount_paid_pence == 3900
    assert loaded.currency == "gbp"


@pytest.mark.parametrize("status", [DRAFT, PAID])
def test_mark_paid_ignores_other_states(store, add_request, status):
    add_request("R1", status=status)
    assert store.mark_paid("R1", PaymentDetails(payment_intent_id="pi_1")) is False
    assert store.get("R1").status == status


def test_mark_paid_missing_row(store):
    assert store.mark_paid("nope", PaymentDetails()) is False


def test_mark_paid_keeps_existing_correlation_ids(store, add_request):
    """Session and payment-intent ids are never overwritten once set."""

    add_request("R1", stripe_session_id="cs_original")
    store.mark_paid("R1", PaymentDetails(stripe_session_id="cs_other", payment_intent_id="pi_1"))
    loaded = store.get("R1")
    assert loaded.stripe_session_id == "cs_original"
    assert loaded.payment_intent_id == "pi_1"


def test_mark_notified_once(store, add_request):
    add_request("R1", status=PAID)
    assert store.mark_notified("R1") is True
    first = store.get("R1").admin_notified_at
    assert first is not None
    assert store.mark_notified("R1") is False
    assert store.get("R1").admin_notified_at == first


def test_mark_notified_requires_paid(store, add_request):
    add_request("R1", status=AWAITING_PAYMENT)
    assert store.mark_notified("R1") is False
    assert store.get("R1").admin_notified_at is None


def test_get_for_session_matches_pair(store, add_request):
    add_request("R1", stripe_session_id="cs_1")
    assert store.get_for_session("R1", "cs_1").id == "R1"
    assert store.get_for_session("R1", "cs_2") is None


def test_concurrent_mark_paid_has_one_winner(store, add_request):
    """Racing writers: the database lets exactly one transition through."""

    add_request("R1", status=AWAITING_PAYMENT)
    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: store.mark_paid("R1", PaymentDetails(payment_intent_id="pi_1")), range(8)))
    assert results.count(True) == 1
    assert store.get("R1").status == PAID



def test_concurrent_mark_notified_stamps_once(store, add_request):
    add_request("R1", status=PAID)
    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: store.mark_notified("R1"), range(8)))
    assert results.count(True) == 1
    assert store.get("R1").admin_notified_at is not None

class BrokenSession:
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, *args, **kwargs):
        raise OperationalError("UPDATE written_requests", {}, Exception("connection refused"))

    def get(self, *args, **kwargs):
        raise OperationalError("SELECT written_requests", {}, Exception("connection refused"))


def test_database_errors_surface_as_store_unavailable():
    store = WrittenRequestStore(BrokenSession)
    with pytest.raises(StoreUnavailableError):
        store.mark_paid("R1", PaymentDetails())
    with pytest.raises(StoreUnavailableError):
        store.mark_notified("R1")
    with pytest.raises(StoreUnavailableError):
        store.get("R1")


def test_sqlite_engine_is_shared_across_threads(tmp_path):
    engine = create_db_engine(f"sqlite+pysqlite:///{tmp_path / 'shared.db'}")
    Base.metadata.create_all(engine)
    threaded_store = WrittenRequestStore(make_session_factory(engine))

    with ThreadPoolExecutor(max_workers=4) as pool:
        created = list(pool.map(lambda i: threaded_store.create([f"q{i}", "b", "c"]).id, range(4)))

    # Rows stay readable after their session closed.
    assert {threaded_store.get(request_id).question_1 for request_id in created} == {"q0", "q1", "q2", "q3"}
    engine.dispose()
