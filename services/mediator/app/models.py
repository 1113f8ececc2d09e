from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

PRODUCTS = "products"
BUSINESSES = "businesses"
CHAT_LOGS = "chat_logs"
ESCALATIONS = "escalations"
FEEDBACK_TALLIES = "feedback_tallies"

ENTITY_KINDS = (PRODUCTS, BUSINESSES, CHAT_LOGS, ESCALATIONS, FEEDBACK_TALLIES)

HELPFUL = "helpful"
UNHELPFUL = "unhelpful"

ESCALATION_REASON_UNHELPFUL = "unhelpful_responses"
ESCALATION_PENDING = "pending"

WELCOME_MESSAGE_ID = "welcome"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def helpfulness_value(is_helpful: bool) -> str:
    return HELPFUL if is_helpful else UNHELPFUL


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    description: str
    business_id: str
    chosen_model: str
    price: float | None = None
    manual_url: str | None = None

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Product":
        price = record.get("price")
        return cls(
            id=str(record["id"]),
            name=record.get("name") or "",
            description=record.get("description") or "",
            business_id=str(record.get("business_id") or ""),
            chosen_model=record.get("chosen_model") or "",
            price=float(price) if price is not None else None,
            manual_url=record.get("manual_url") or None,
        )


@dataclass(frozen=True)
class Business:
    id: str
    name: str
    email_support: str
    phone_support: str | None = None

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Business":
        return cls(
            id=str(record["id"]),
            name=record.get("name") or "",
            email_support=record.get("email_support") or "",
            phone_support=record.get("phone_support") or None,
        )


@dataclass
class ChatExchange:
    """One persisted question/answer round trip (stored as a chat log)."""

    id: str
    product_id: str
    question: str
    response: str
    session_id: str
    timestamp: datetime = field(default_factory=utcnow)
    helpfulness: str | None = None

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "question": self.question,
            "response": self.response,
            "session_id": self.session_id,
            "timestamp": self.timestamp.isoformat(),
            "created_ts": self.timestamp.timestamp(),
            "helpfulness": self.helpfulness,
        }


@dataclass
class Escalation:
    id: str
    product_id: str
    reason: str = ESCALATION_REASON_UNHELPFUL
    status: str = ESCALATION_PENDING
    created_at: datetime = field(default_factory=utcnow)

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "reason": self.reason,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
            "created_ts": self.created_at.timestamp(),
        }


@dataclass
class DisplayMessage:
    id: str
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = field(default_factory=utcnow)
    is_helpful: bool | None = None
    feedback_eligible: bool = False
    exchange_id: str | None = None
