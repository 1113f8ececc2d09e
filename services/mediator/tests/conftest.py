import asyncio

import pytest

from app.config import Settings
from app.escalation import EscalationPolicy
from app.models import BUSINESSES, CHAT_LOGS, PRODUCTS, ChatExchange
from app.openai_client import GenerationFailure
from app.record_store import InMemoryRecordStore, PersistenceFailure


def run(coro):
    return asyncio.run(coro)


class ScriptedGenerator:
    def __init__(self, replies=None, error=None):
        self.replies = list(replies or [])
        self.error = error
        self.calls = []

    async def generate(self, prompt, model, max_output_tokens):
        self.calls.append({"prompt": prompt, "model": model, "max_output_tokens": max_output_tokens})
        if self.error is not None:
            raise self.error
        if not self.replies:
            raise GenerationFailure("Empty response")
        return self.replies.pop(0)


class FailingStore(InMemoryRecordStore):
    """Fails writes for the listed entity kinds."""

    def __init__(self, failing_kinds):
        super().__init__()
        self.failing_kinds = set(failing_kinds)

    async def create(self, kind, record):
        if kind in self.failing_kinds:
            raise PersistenceFailure("Record store unavailable")
        return await super().create(kind, record)

    async def update(self, kind, record_id, partial):
        if kind in self.failing_kinds:
            raise PersistenceFailure("Record store unavailable")
        return await super().update(kind, record_id, partial)


def seed_product(store, product_id="prod_kettle", business=True):
    if business:
        run(
            store.create(
                BUSINESSES,
                {
                    "id": "bus_1",
                    "name": "Kettle Co",
                    "email_support": "help@kettle.example",
                    "phone_support": "+1-555-0100",
                },
            )
        )
    run(
        store.create(
            PRODUCTS,
            {
                "id": product_id,
                "name": "SmartKettle X",
                "description": "Boils water in 90 seconds",
                "price": 49.5,
                "manual_url": "https://example.com/kettle.pdf",
                "chosen_model": "gpt4o",
                "business_id": "bus_1",
            },
        )
    )


def seed_unhelpful_history(store, product_id, count):
    for index in range(count):
        exchange = ChatExchange(
            id=f"chat_old_{index}",
            product_id=product_id,
            question="Why?",
            response="Not sure.",
            session_id="session_old",
            helpfulness="unhelpful",
        )
        run(store.create(CHAT_LOGS, exchange.to_record()))


@pytest.fixture
def settings():
    return Settings(
        openai_api_key="",
        openai_chat_model="gpt-4o-mini",
        max_output_tokens=300,
        record_store="memory",
        qdrant_url="http://fake",
        qdrant_collection_prefix="test",
        mediator_api_key="secret",
        escalation_threshold=20,
        scan_limit=100,
        session_ttl_seconds=3600,
    )


@pytest.fixture
def store():
    store = InMemoryRecordStore()
    seed_product(store)
    return store


@pytest.fixture
def policy():
    return EscalationPolicy(threshold=20)
