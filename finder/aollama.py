import logging
from typing import Any

import httpx

from finder.completion import BaseCompletionClient, CompletionOptions, error_from_text


logger = logging.getLogger(__name__)


EXTRA_OPTIONS: dict[str, Any] = {"num_ctx": 2048, "repeat_penalty": 1.1}


class OllamaClient(BaseCompletionClient):
    name = "ollama"
    default_url = "http://localhost:11434"
    default_model = "mistral"

    async def _generate(
        self, prompt: str, options: CompletionOptions, model: str
    ) -> str:
        resp = await self._client.post(
            "/api/generate",
            json={
                "model": model,
                "prompt": prompt,
                "stream": False,
                "options": {
                    "temperature": options.temperature,
                    "top_p": options.top_p,
                    "num_predict": options.max_tokens,
                    **EXTRA_OPTIONS,
                },
            },
            timeout=self.timeout,
        )
        resp.raise_for_status()
        data = resp.json()
        if "error" in data:
            raise error_from_text(str(data["error"]))
        return (data.get("response") or "").strip()

    async def list_models(self) -> list[str]:
        resp = await self._client.get("/api/tags", timeout=self.health_timeout)
        resp.raise_for_status()
        return [m["name"] for m in resp.json().get("models", []) if "name" in m]

    async def pull_model(self, model: str | None = None) -> bool:
        model = self.model if model is None else model
        logger.info("Pulling model %s ...", model)
        try:
            resp = await self._client.post(
                "/api/pull",
                json={"name": model, "stream": False},
                timeout=None,
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Error pulling model %s: %r", model, e)
            return False
        logger.info("Successfully pulled model %s", model)
        return True

    async def ensure_model_available(self) -> bool:
        self._model_checked = True
        try:
            names = await self.list_models()
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error("Error listing %s models: %r", self.name, e)
            return False

        # Ollama reports "mistral:latest" for a model pulled as "mistral"
        if any(n == self.model or n.split(":")[0] == self.model for n in names):
            return True

        logger.info("Model %s not found. Attempting to pull...", self.model)
        return await self.pull_model()

    async def health_check(self) -> bool:
        return await self._probe("/")
