from __future__ import annotations

import enum
import logging
import uuid
from typing import Protocol

from .config import Settings
from .models import CHAT_LOGS, ChatExchange, DisplayMessage, utcnow
from .prompts import APOLOGY_MESSAGE, build_support_prompt, resolve_model
from .record_store import PersistenceFailure, RecordStore
from .session import ChatSession

logger = logging.getLogger("mediator.exchange")


class Generator(Protocol):
    async def generate(self, prompt: str, model: str, max_output_tokens: int) -> str: ...


class SendOutcome(str, enum.Enum):
    ANSWERED = "answered"
    DEGRADED = "degraded"
    IGNORED_BLANK = "ignored_blank"
    BUSY = "busy"


def _message_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


async def send_message(
    session: ChatSession,
    text: str | None,
    *,
    store: RecordStore,
    generator: Generator,
    settings: Settings,
) -> SendOutcome:
    question = (text or "").strip()
    if not question:
        return SendOutcome.IGNORED_BLANK
    if session.sending:
        logger.info("Rejected message while a response is in flight session=%s", session.session_id)
        return SendOutcome.BUSY

    product = session.product
    session.messages.append(DisplayMessage(id=_message_id("user"), role="user", content=question))
    session.sending = True
    try:
        prompt = build_support_prompt(product.name, product.description, question)
        model = resolve_model(product.chosen_model, settings.openai_chat_model)
        try:
            answer = await generator.generate(prompt, model=model, max_output_tokens=settings.max_output_tokens)
        except Exception as exc:
            logger.warning("Generation failed, using apology session=%s: %s", session.session_id, exc)
            session.messages.append(
                DisplayMessage(id=_message_id("error"), role="assistant", content=APOLOGY_MESSAGE)
            )
            return SendOutcome.DEGRADED

        reply = DisplayMessage(
            id=_message_id("ai"),
            role="assistant",
            content=answer,
            feedback_eligible=True,
        )
        session.messages.append(reply)

        exchange = ChatExchange(
            id=_message_id("chat"),
            product_id=product.id,
            question=question,
            response=answer,
            session_id=session.session_id,
            timestamp=utcnow(),
        )
        try:
            await store.create(CHAT_LOGS, exchange.to_record())
            reply.exchange_id = exchange.id
        except PersistenceFailure as exc:
            logger.warning("Chat log write failed session=%s: %s", session.session_id, exc)
        return SendOutcome.ANSWERED
    finally:
        session.sending = False
