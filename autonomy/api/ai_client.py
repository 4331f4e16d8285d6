"""JSON-mode chat completion client used by the AI signal generators."""

from __future__ import annotations

import logging
from typing import Optional, TypeVar

from openai import AsyncOpenAI
from pydantic import BaseModel

from autonomy.config import AUTONOMY_AI_MODEL, HTTP_TIMEOUT, OPENAI_API_KEY, OPENAI_BASE_URL

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class AiSignalClient:
    """Ask a chat model for a JSON object and validate it against a schema."""

    def __init__(
        self,
        api_key: str = OPENAI_API_KEY,
        model: str = AUTONOMY_AI_MODEL,
        base_url: Optional[str] = OPENAI_BASE_URL,
    ) -> None:
        self.model = model
        self._client: Optional[AsyncOpenAI] = None
        if api_key:
            self._client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=HTTP_TIMEOUT * 4)

    @property
    def configured(self) -> bool:
        return self._client is not None

    async def generate_object(self, prompt: str, schema: type[ModelT]) -> ModelT:
        """Return the model's answer parsed into ``schema``.

        Raises openai.OpenAIError on API failures and
        pydantic.ValidationError if the answer does not match the schema.
        """
        if self._client is None:
            raise RuntimeError("AI client is not configured")
        response = await self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": "Respond with a single JSON object only."},
                {"role": "user", "content": prompt},
            ],
            response_format={"type": "json_object"},
            temperature=0.2,
        )
        content = response.choices[0].message.content or "{}"
        logger.debug("ai_response", extra={"model": self.model, "chars": len(content)})
        return schema.model_validate_json(content)
