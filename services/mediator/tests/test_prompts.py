from app.prompts import build_support_prompt, resolve_model, welcome_message


def test_prompt_grounds_on_product_and_question():
    prompt = build_support_prompt("SmartKettle X", "Boils water in 90 seconds", "How long to boil?")
    assert "SmartKettle X" in prompt
    assert "Boils water in 90 seconds" in prompt
    assert "Use only the information" in prompt
    assert "not certain" in prompt
    assert "contacting support" in prompt
    assert prompt.endswith("Customer question: How long to boil?")


def test_prompt_is_deterministic():
    first = build_support_prompt("A", "B", "C")
    second = build_support_prompt("A", "B", "C")
    assert first == second


def test_prompt_without_description():
    prompt = build_support_prompt("Widget", "   ", "Does it float?")
    assert "(no description provided)" in prompt


def test_resolve_model_lookup_and_fallback():
    assert resolve_model("gpt4o", "default-model") == "gpt-4o-mini"
    assert resolve_model("GPT4O", "default-model") == "gpt-4o-mini"
    assert resolve_model("claude3", "default-model") == "default-model"
    assert resolve_model("", "default-model") == "default-model"
    assert resolve_model(None, "default-model") == "default-model"


def test_welcome_names_product():
    assert "SmartKettle X" in welcome_message("SmartKettle X")
