from __future__ import annotations

import asyncio
import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass

from .config import DEFAULT_ESCALATION_THRESHOLD
from .models import (
    CHAT_LOGS,
    ESCALATION_PENDING,
    ESCALATION_REASON_UNHELPFUL,
    ESCALATIONS,
    FEEDBACK_TALLIES,
    UNHELPFUL,
    Escalation,
    helpfulness_value,
)
from .record_store import PersistenceFailure, RecordStore
from .session import ChatSession, MessageNotFound

logger = logging.getLogger("mediator.escalation")


@dataclass(frozen=True)
class FeedbackAck:
    title: str
    description: str
    escalated: bool

    @classmethod
    def for_feedback(cls, is_helpful: bool, escalated: bool) -> "FeedbackAck":
        if is_helpful:
            return cls("Thank you!", "Glad I could help!", escalated)
        return cls("Feedback received", "We'll work on improving our responses", escalated)


class EscalationPolicy:
    """Owns the unhelpful-feedback threshold and the per-product tally.

    One instance per process; tally updates and escalation creation for a
    product are serialized on that product's lock.

    The tally only grows: every unhelpful click adds one and helpful clicks
    never subtract. Once a product is past the threshold, any later unhelpful
    event files a new pending escalation as soon as the previous one is no
    longer pending.
    """

    def __init__(self, threshold: int = DEFAULT_ESCALATION_THRESHOLD):
        if threshold < 1:
            raise ValueError("threshold must be at least 1")
        self.threshold = threshold
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def should_escalate(self, unhelpful_count: int) -> bool:
        return unhelpful_count >= self.threshold

    async def historical_unhelpful(self, store: RecordStore, product_id: str) -> int:
        exchanges = await store.count(CHAT_LOGS, {"product_id": product_id, "helpfulness": UNHELPFUL})
        tally = await self._get_tally(store, product_id)
        return max(exchanges, tally.get("unhelpful_count", 0) if tally else 0)

    async def record_unhelpful(self, store: RecordStore, product_id: str) -> int:
        async with self._locks[product_id]:
            tally = await self._get_tally(store, product_id)
            if tally is None:
                await store.create(
                    FEEDBACK_TALLIES,
                    {"id": product_id, "product_id": product_id, "unhelpful_count": 1},
                )
                return 1
            count = int(tally.get("unhelpful_count", 0)) + 1
            await store.update(FEEDBACK_TALLIES, product_id, {"unhelpful_count": count})
            return count

    async def open_escalation(self, store: RecordStore, product_id: str) -> bool:
        """Create a pending escalation unless the product already has one."""
        async with self._locks[product_id]:
            pending = await store.count(ESCALATIONS, {"product_id": product_id, "status": ESCALATION_PENDING})
            if pending:
                logger.info("Escalation already pending for product=%s", product_id)
                return False
            escalation = Escalation(
                id=f"esc_{uuid.uuid4().hex}",
                product_id=product_id,
                reason=ESCALATION_REASON_UNHELPFUL,
                status=ESCALATION_PENDING,
            )
            await store.create(ESCALATIONS, escalation.to_record())
            logger.info("Escalation opened id=%s product=%s", escalation.id, product_id)
            return True

    async def _get_tally(self, store: RecordStore, product_id: str) -> dict | None:
        rows = await store.list(FEEDBACK_TALLIES, {"id": product_id}, limit=1)
        return rows[0] if rows else None


async def submit_feedback(
    session: ChatSession,
    message_id: str,
    is_helpful: bool,
    *,
    store: RecordStore,
    policy: EscalationPolicy,
) -> FeedbackAck:
    message = session.find_message(message_id)
    if message is None or not message.feedback_eligible:
        raise MessageNotFound(message_id)

    message.is_helpful = is_helpful
    product_id = session.product.id

    if message.exchange_id:
        try:
            await store.update(CHAT_LOGS, message.exchange_id, {"helpfulness": helpfulness_value(is_helpful)})
        except PersistenceFailure as exc:
            logger.warning("Feedback write failed session=%s exchange=%s: %s", session.session_id, message.exchange_id, exc)
    else:
        logger.info("No persisted exchange for message=%s; feedback kept in session only", message_id)

    if not is_helpful:
        session.unhelpful_count += 1
        total = session.prior_unhelpful + session.unhelpful_count
        try:
            total = max(total, await policy.record_unhelpful(store, product_id))
        except PersistenceFailure as exc:
            logger.warning("Feedback tally update failed product=%s: %s", product_id, exc)

        if policy.should_escalate(total) and not session.escalation_filed:
            if not session.escalated:
                session.escalated = True
                logger.info(
                    "Session escalated session=%s product=%s unhelpful=%s",
                    session.session_id,
                    product_id,
                    total,
                )
            session.escalation_filed = True
            try:
                await policy.open_escalation(store, product_id)
            except PersistenceFailure as exc:
                logger.warning("Escalation write failed product=%s: %s", product_id, exc)

    return FeedbackAck.for_feedback(is_helpful, session.escalated)
