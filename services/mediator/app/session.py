from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from .models import BUSINESSES, PRODUCTS, WELCOME_MESSAGE_ID, Business, DisplayMessage, Product
from .prompts import welcome_message
from .record_store import PersistenceFailure, RecordStore

if TYPE_CHECKING:
    from .escalation import EscalationPolicy

logger = logging.getLogger("mediator.session")


class NotFound(Exception):
    pass


class ProductNotFound(NotFound):
    pass


class SessionNotFound(NotFound):
    pass


class MessageNotFound(NotFound):
    pass


@dataclass
class ChatSession:
    session_id: str
    product: Product
    business: Business | None = None
    messages: list[DisplayMessage] = field(default_factory=list)
    sending: bool = False
    escalated: bool = False
    unhelpful_count: int = 0
    prior_unhelpful: int = 0
    escalation_filed: bool = False
    last_active: float = field(default_factory=time.monotonic)

    def find_message(self, message_id: str) -> DisplayMessage | None:
        for message in self.messages:
            if message.id == message_id:
                return message
        return None


def new_session_id() -> str:
    return f"session_{uuid.uuid4().hex}"


async def bootstrap_session(
    product_id: str,
    *,
    store: RecordStore,
    policy: "EscalationPolicy",
) -> ChatSession:
    rows = await store.list(PRODUCTS, {"id": product_id}, limit=1)
    if not rows:
        raise ProductNotFound(product_id)
    product = Product.from_record(rows[0])

    business = None
    if product.business_id:
        try:
            business_rows = await store.list(BUSINESSES, {"id": product.business_id}, limit=1)
            if business_rows:
                business = Business.from_record(business_rows[0])
            else:
                logger.warning("Business %s missing for product=%s", product.business_id, product.id)
        except PersistenceFailure as exc:
            logger.warning("Business lookup failed for product=%s: %s", product.id, exc)

    session = ChatSession(session_id=new_session_id(), product=product, business=business)

    try:
        prior_unhelpful = await policy.historical_unhelpful(store, product.id)
    except PersistenceFailure as exc:
        logger.warning("Unhelpful history lookup failed for product=%s: %s", product.id, exc)
        prior_unhelpful = 0
    session.prior_unhelpful = prior_unhelpful
    if policy.should_escalate(prior_unhelpful):
        session.escalated = True

    session.messages.append(
        DisplayMessage(
            id=WELCOME_MESSAGE_ID,
            role="assistant",
            content=welcome_message(product.name),
            feedback_eligible=False,
        )
    )
    logger.info(
        "Session started session=%s product=%s escalated=%s",
        session.session_id,
        product.id,
        session.escalated,
    )
    return session


class SessionRegistry:
    """Live chat sessions for this process, keyed by session id.

    Sessions idle for longer than ``ttl_seconds`` are dropped on the next
    ``add`` or ``get``.
    """

    def __init__(self, ttl_seconds: float = 3600, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._sessions: dict[str, ChatSession] = {}

    def add(self, session: ChatSession) -> ChatSession:
        self.evict_idle()
        session.last_active = self.clock()
        self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> ChatSession:
        self.evict_idle()
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        session.last_active = self.clock()
        return session

    def evict_idle(self) -> int:
        cutoff = self.clock() - self.ttl_seconds
        idle = [sid for sid, session in self._sessions.items() if session.last_active < cutoff]
        for session_id in idle:
            del self._sessions[session_id]
        if idle:
            logger.info("Evicted %s idle sessions", len(idle))
        return len(idle)

    def close(self, session_id: str) -> None:
        if self._sessions.pop(session_id, None) is None:
            raise SessionNotFound(session_id)

    def clear(self) -> None:
        self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)
