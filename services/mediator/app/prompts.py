from __future__ import annotations

# Product-facing model choices mapped onto models the generator can serve.
SUPPORTED_MODELS = {
    "gpt4o": "gpt-4o-mini",
    "gpt-4o": "gpt-4o",
    "gpt-4o-mini": "gpt-4o-mini",
}

APOLOGY_MESSAGE = (
    "I apologize, but I'm having trouble responding right now. "
    "Please try again or contact our support team."
)


def resolve_model(chosen_model: str | None, default_model: str) -> str:
    key = (chosen_model or "").strip().lower()
    return SUPPORTED_MODELS.get(key, default_model)


def welcome_message(product_name: str) -> str:
    return (
        f"Hello! I'm here to help you with {product_name}. "
        "I can answer questions based on the product manual. What would you like to know?"
    )


def build_support_prompt(product_name: str, product_description: str, question: str) -> str:
    description = product_description.strip() or "(no description provided)"
    return (
        f"You are a helpful product support assistant for {product_name}.\n"
        "Use only the information from the product manual and description provided below. "
        "Do not invent features, specifications or policies that are not stated there.\n"
        "If you're unsure about something, say you're not certain and suggest contacting support.\n\n"
        f"Product: {product_name}\n"
        f"Description: {description}\n\n"
        "Keep responses concise and helpful. Always be polite and professional.\n\n"
        f"Customer question: {question}"
    )
