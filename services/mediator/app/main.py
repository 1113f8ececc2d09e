from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Literal
from uuid import uuid4

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from pydantic import BaseModel

from .config import Settings, load_settings
from .escalation import EscalationPolicy, submit_feedback
from .exchange import SendOutcome, send_message
from .openai_client import ResponseGenerator
from .record_store import InMemoryRecordStore, PersistenceFailure, QdrantRecordStore, RecordStore
from .session import ChatSession, MessageNotFound, NotFound, SessionRegistry, bootstrap_session

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
logger = logging.getLogger("mediator")


def build_store(settings: Settings) -> RecordStore:
    if settings.record_store == "memory":
        logger.warning("Using in-memory record store; records are lost on restart")
        return InMemoryRecordStore()
    return QdrantRecordStore(
        url=settings.qdrant_url,
        collection_prefix=settings.qdrant_collection_prefix,
        scan_limit=settings.scan_limit,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = load_settings()
    app.state.settings = settings
    app.state.store = build_store(settings)
    app.state.generator = ResponseGenerator(api_key=settings.openai_api_key)
    app.state.policy = EscalationPolicy(threshold=settings.escalation_threshold)
    app.state.sessions = SessionRegistry(ttl_seconds=settings.session_ttl_seconds)
    logger.info("Mediator service started (store=%s)", settings.record_store)
    yield
    app.state.sessions.clear()
    logger.info("Mediator service stopped")


app = FastAPI(title="Product Support Mediator", version="0.1.0", lifespan=lifespan)


class StartSessionRequest(BaseModel):
    product_id: str


class SendMessageRequest(BaseModel):
    text: str


class FeedbackRequest(BaseModel):
    message_id: str
    is_helpful: bool


class MessageView(BaseModel):
    id: str
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime
    is_helpful: bool | None = None
    feedback_eligible: bool


class ProductView(BaseModel):
    id: str
    name: str
    description: str
    price: float | None = None
    manual_url: str | None = None


class SupportContact(BaseModel):
    business_name: str
    email_support: str
    phone_support: str | None = None


class SessionState(BaseModel):
    session_id: str
    product: ProductView
    messages: list[MessageView]
    sending: bool
    escalated: bool
    unhelpful_count: int
    support_contact: SupportContact | None = None


class SendMessageResponse(BaseModel):
    outcome: SendOutcome
    session: SessionState


class Acknowledgement(BaseModel):
    title: str
    description: str
    escalated: bool


class FeedbackResponse(BaseModel):
    acknowledgement: Acknowledgement
    session: SessionState


def session_state(session: ChatSession) -> SessionState:
    product = session.product
    contact = None
    if session.business is not None:
        contact = SupportContact(
            business_name=session.business.name,
            email_support=session.business.email_support,
            phone_support=session.business.phone_support,
        )
    return SessionState(
        session_id=session.session_id,
        product=ProductView(
            id=product.id,
            name=product.name,
            description=product.description,
            price=product.price,
            manual_url=product.manual_url,
        ),
        messages=[
            MessageView(
                id=message.id,
                role=message.role,
                content=message.content,
                timestamp=message.timestamp,
                is_helpful=message.is_helpful,
                feedback_eligible=message.feedback_eligible,
            )
            for message in session.messages
        ],
        sending=session.sending,
        escalated=session.escalated,
        unhelpful_count=session.unhelpful_count,
        support_contact=contact,
    )


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> RecordStore:
    return request.app.state.store


def get_generator(request: Request) -> ResponseGenerator:
    return request.app.state.generator


def get_policy(request: Request) -> EscalationPolicy:
    return request.app.state.policy


def get_sessions(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def require_api_key(
    settings: Settings = Depends(get_settings),
    x_api_key: str | None = Header(default=None, alias="x-api-key"),
) -> None:
    if not x_api_key or x_api_key != settings.mediator_api_key:
        raise HTTPException(status_code=401, detail="Unauthorized")


def lookup_session(session_id: str, sessions: SessionRegistry = Depends(get_sessions)) -> ChatSession:
    try:
        return sessions.get(session_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="Session not found")


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    request_id = request.headers.get("x-request-id", str(uuid4()))
    request.state.request_id = request_id
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    response.headers["x-request-id"] = request_id
    logger.info(
        "request_id=%s method=%s path=%s status=%s latency_ms=%.1f",
        request_id,
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
    )
    return response


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/sessions", response_model=SessionState, dependencies=[Depends(require_api_key)])
async def start_session(
    payload: StartSessionRequest,
    store: RecordStore = Depends(get_store),
    policy: EscalationPolicy = Depends(get_policy),
    sessions: SessionRegistry = Depends(get_sessions),
):
    try:
        session = await bootstrap_session(payload.product_id, store=store, policy=policy)
    except NotFound:
        raise HTTPException(status_code=404, detail="Product not found")
    except PersistenceFailure:
        raise HTTPException(status_code=503, detail="Record store unavailable")
    sessions.add(session)
    return session_state(session)


@app.get("/sessions/{session_id}", response_model=SessionState, dependencies=[Depends(require_api_key)])
async def get_session(session: ChatSession = Depends(lookup_session)):
    return session_state(session)


@app.post(
    "/sessions/{session_id}/messages",
    response_model=SendMessageResponse,
    dependencies=[Depends(require_api_key)],
)
async def post_message(
    payload: SendMessageRequest,
    session: ChatSession = Depends(lookup_session),
    settings: Settings = Depends(get_settings),
    store: RecordStore = Depends(get_store),
    generator: ResponseGenerator = Depends(get_generator),
):
    outcome = await send_message(session, payload.text, store=store, generator=generator, settings=settings)
    return SendMessageResponse(outcome=outcome, session=session_state(session))


@app.post(
    "/sessions/{session_id}/feedback",
    response_model=FeedbackResponse,
    dependencies=[Depends(require_api_key)],
)
async def post_feedback(
    payload: FeedbackRequest,
    session: ChatSession = Depends(lookup_session),
    store: RecordStore = Depends(get_store),
    policy: EscalationPolicy = Depends(get_policy),
):
    try:
        ack = await submit_feedback(session, payload.message_id, payload.is_helpful, store=store, policy=policy)
    except MessageNotFound:
        raise HTTPException(status_code=404, detail="Message not found or not eligible for feedback")
    return FeedbackResponse(
        acknowledgement=Acknowledgement(title=ack.title, description=ack.description, escalated=ack.escalated),
        session=session_state(session),
    )


@app.delete("/sessions/{session_id}", dependencies=[Depends(require_api_key)])
async def end_session(session_id: str, sessions: SessionRegistry = Depends(get_sessions)):
    try:
        sessions.close(session_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="Session not found")
    return {"status": "closed", "session_id": session_id}
