import logging
import os
from typing import Any

import httpx
import openai

from finder.completion import (
    BaseCompletionClient,
    CompletionOptions,
    classify_http_error,
    error_from_text,
)
from finder.errors import ModelConnectionRefused, ModelError, ModelTimeout


logger = logging.getLogger(__name__)


class LocalAIClient(BaseCompletionClient):
    """OpenAI-compatible completion server, e.g. LocalAI or Ollama's `/v1`."""

    name = "localai"
    default_url = "http://localhost:8080"
    default_model = "mistral"

    def __init__(
        self,
        *,
        openai_client: openai.AsyncClient | None = None,
        api_key: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        if api_key is None:
            api_key = os.environ.get("LOCALAI_API_KEY", "sk-local")
        self.openai_client = (
            openai.AsyncClient(
                base_url=f"{self.base_url.rstrip('/')}/v1",
                api_key=api_key,
                timeout=self.timeout,
                # retries are ours
                max_retries=0,
            )
            if openai_client is None
            else openai_client
        )

    async def _generate(
        self, prompt: str, options: CompletionOptions, model: str
    ) -> str:
        resp = await self.openai_client.completions.create(
            model=model,
            prompt=prompt,
            max_tokens=options.max_tokens,
            temperature=options.temperature,
            top_p=options.top_p,
            presence_penalty=0.1,
            frequency_penalty=0.2,
        )
        if not resp.choices:
            raise ModelError("Invalid response format from LocalAI")
        return (resp.choices[0].text or "").strip()

    def _classify_error(self, exc: Exception) -> ModelError:
        match exc:
            case openai.APITimeoutError():
                return ModelTimeout("The LocalAI request timed out.")
            case openai.APIConnectionError():
                return ModelConnectionRefused(
                    "Connection refused to LocalAI. Is the service running?"
                )
            case openai.APIStatusError():
                return error_from_text(
                    f"Invalid response from LocalAI: {exc.status_code} {exc.message}"
                )
            case _:
                return classify_http_error(exc, backend=self.name)

    async def ensure_model_available(self) -> bool:
        # Nothing to provision here; residency is reported only.
        self._model_checked = True
        try:
            resp = await self._client.get("/v1/models", timeout=self.health_timeout)
            resp.raise_for_status()
            ids = [m.get("id") for m in resp.json().get("data", [])]
        except (httpx.HTTPError, ValueError, TypeError, AttributeError) as e:
            logger.error("Error listing %s models: %r", self.name, e)
            return False
        if self.model not in ids:
            logger.warning("Model %s not loaded by LocalAI (have %s)", self.model, ids)
            return False
        return True

    async def health_check(self) -> bool:
        for path in ("/readyz", "/api/tags", "/api/version"):
            if await self._probe(path):
                return True
        logger.warning("LocalAI service health check failed")
        return False

    async def aclose(self) -> None:
        await self.openai_client.close()
        await super().aclose()
