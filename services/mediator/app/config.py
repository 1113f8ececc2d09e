from dataclasses import dataclass
import os

DEFAULT_ESCALATION_THRESHOLD = 20


def _get_env(name: str, default: str | None = None, required: bool = False) -> str:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        if default is not None:
            return default
        if required:
            raise ValueError(f"{name} is required")
        return ""
    return value


@dataclass(frozen=True)
class Settings:
    openai_api_key: str
    openai_chat_model: str
    max_output_tokens: int
    record_store: str
    qdrant_url: str
    qdrant_collection_prefix: str
    mediator_api_key: str
    escalation_threshold: int
    scan_limit: int
    session_ttl_seconds: int


def load_settings() -> Settings:
    record_store = _get_env("RECORD_STORE", "qdrant").lower()
    if record_store not in ("qdrant", "memory"):
        raise ValueError(f"RECORD_STORE must be 'qdrant' or 'memory', got {record_store!r}")
    return Settings(
        openai_api_key=_get_env("OPENAI_API_KEY", ""),
        openai_chat_model=_get_env("OPENAI_CHAT_MODEL", "gpt-4o-mini"),
        max_output_tokens=int(_get_env("MAX_OUTPUT_TOKENS", "300")),
        record_store=record_store,
        qdrant_url=_get_env("QDRANT_URL", "http://qdrant:6333"),
        qdrant_collection_prefix=_get_env("QDRANT_COLLECTION_PREFIX", "product_support"),
        mediator_api_key=_get_env("MEDIATOR_API_KEY", required=True),
        escalation_threshold=int(_get_env("ESCALATION_THRESHOLD", str(DEFAULT_ESCALATION_THRESHOLD))),
        scan_limit=int(_get_env("SCAN_LIMIT", "10000")),
        session_ttl_seconds=int(_get_env("SESSION_TTL_SECONDS", "3600")),
    )
