from __future__ import annotations

import logging

from openai import AsyncOpenAI

logger = logging.getLogger("mediator.openai")


class GenerationFailure(Exception):
    pass


class ResponseGenerator:
    def __init__(self, api_key: str, client: AsyncOpenAI | None = None, temperature: float = 0.2):
        self.api_key = api_key
        self.client = client or (AsyncOpenAI(api_key=api_key) if api_key else None)
        self.temperature = temperature

    async def generate(self, prompt: str, model: str, max_output_tokens: int) -> str:
        if self.client is None:
            raise GenerationFailure("Response generator unavailable")
        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=max_output_tokens,
                temperature=self.temperature,
            )
        except Exception as exc:
            logger.warning("OpenAI chat completion failed (model=%s): %s", model, exc)
            raise GenerationFailure("Response generator unavailable") from exc

        content = ""
        if response.choices:
            content = (response.choices[0].message.content or "").strip()
        if not content:
            logger.warning("OpenAI returned an empty completion (model=%s)", model)
            raise GenerationFailure("Empty response")
        return content
