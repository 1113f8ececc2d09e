import pytest

from app.models import WELCOME_MESSAGE_ID
from app.record_store import InMemoryRecordStore
from app.session import ProductNotFound, SessionNotFound, SessionRegistry, bootstrap_session
from conftest import run, seed_product, seed_unhelpful_history


def test_bootstrap_fresh_product(store, policy):
    session = run(bootstrap_session("prod_kettle", store=store, policy=policy))

    assert session.product.name == "SmartKettle X"
    assert session.business.email_support == "help@kettle.example"
    assert session.escalated is False
    assert len(session.messages) == 1
    welcome = session.messages[0]
    assert welcome.id == WELCOME_MESSAGE_ID
    assert welcome.role == "assistant"
    assert welcome.feedback_eligible is False
    assert "SmartKettle X" in welcome.content


def test_bootstrap_missing_product(store, policy):
    with pytest.raises(ProductNotFound):
        run(bootstrap_session("prod_missing", store=store, policy=policy))


def test_bootstrap_tolerates_missing_business(policy):
    store = InMemoryRecordStore()
    seed_product(store, business=False)
    session = run(bootstrap_session("prod_kettle", store=store, policy=policy))
    assert session.business is None
    assert len(session.messages) == 1


def test_bootstrap_escalated_from_history(store, policy):
    seed_unhelpful_history(store, "prod_kettle", 20)
    session = run(bootstrap_session("prod_kettle", store=store, policy=policy))
    assert session.escalated is True


def test_bootstrap_below_threshold(store, policy):
    seed_unhelpful_history(store, "prod_kettle", 19)
    session = run(bootstrap_session("prod_kettle", store=store, policy=policy))
    assert session.escalated is False


def test_bootstrap_never_persists_welcome(store, policy):
    run(bootstrap_session("prod_kettle", store=store, policy=policy))
    assert store.records["chat_logs"] == {}


def test_sessions_get_distinct_ids(store, policy):
    first = run(bootstrap_session("prod_kettle", store=store, policy=policy))
    second = run(bootstrap_session("prod_kettle", store=store, policy=policy))
    assert first.session_id != second.session_id


def test_registry_lifecycle(store, policy):
    registry = SessionRegistry()
    session = registry.add(run(bootstrap_session("prod_kettle", store=store, policy=policy)))
    assert registry.get(session.session_id) is session

    registry.close(session.session_id)
    with pytest.raises(SessionNotFound):
        registry.get(session.session_id)
    with pytest.raises(SessionNotFound):
        registry.close(session.session_id)


def test_registry_clear(store, policy):
    registry = SessionRegistry()
    registry.add(run(bootstrap_session("prod_kettle", store=store, policy=policy)))
    registry.clear()
    assert len(registry) == 0


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_registry_evicts_idle_sessions(store, policy):
    clock = FakeClock()
    registry = SessionRegistry(ttl_seconds=60, clock=clock)
    idle = registry.add(run(bootstrap_session("prod_kettle", store=store, policy=policy)))
    clock.now += 30
    active = registry.add(run(bootstrap_session("prod_kettle", store=store, policy=policy)))

    clock.now += 45
    assert registry.get(active.session_id) is active
    with pytest.raises(SessionNotFound):
        registry.get(idle.session_id)
    assert len(registry) == 1


def test_registry_get_refreshes_activity(store, policy):
    clock = FakeClock()
    registry = SessionRegistry(ttl_seconds=60, clock=clock)
    session = registry.add(run(bootstrap_session("prod_kettle", store=store, policy=policy)))

    for _ in range(3):
        clock.now += 50
        assert registry.get(session.session_id) is session
