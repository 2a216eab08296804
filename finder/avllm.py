import logging
from typing import Any

import httpx

from finder.completion import BaseCompletionClient, CompletionOptions
from finder.errors import ModelError


logger = logging.getLogger(__name__)


SYSTEM_PROMPT = "You are a helpful AI assistant specializing in recipes and cooking."


def format_prompt(prompt: str, model: str) -> str:
    """Wrap `prompt` in the chat template the instruction-tuned model expects."""
    name = model.lower()
    if "phi-3" in name:
        return f"<|system|>\n{SYSTEM_PROMPT}\n<|user|>\n{prompt}\n<|assistant|>"
    if "mixtral" in name:
        return f"<s>[INST] {prompt} [/INST]"
    return prompt


class VLLMClient(BaseCompletionClient):
    """Text-generation-inference style server (`/generate`)."""

    name = "vllm"
    default_url = "http://localhost:8000"
    default_model = "Phi-3-mini-4k-instruct-q4"

    async def _generate(
        self, prompt: str, options: CompletionOptions, model: str
    ) -> str:
        resp = await self._client.post(
            "/generate",
            json={
                "inputs": format_prompt(prompt, model),
                "parameters": {
                    "max_new_tokens": options.max_tokens,
                    "temperature": options.temperature,
                    "top_p": options.top_p,
                    "do_sample": True,
                    "return_full_text": False,
                },
            },
            timeout=self.timeout,
        )
        resp.raise_for_status()
        data = resp.json()
        if isinstance(data, list) and data:
            data = data[0]
        if not isinstance(data, dict):
            raise ModelError("Empty or invalid response from vLLM")
        return (data.get("generated_text") or "").strip()

    async def model_info(self) -> dict[str, Any] | None:
        try:
            resp = await self._client.get("/info", timeout=self.health_timeout)
            resp.raise_for_status()
            info = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error getting model info: %r", e)
            return None
        return info if isinstance(info, dict) else None

    async def ensure_model_available(self) -> bool:
        # The server loads exactly one model at start-up; readiness is all we get.
        self._model_checked = True
        ready = await self.health_check()
        if not ready:
            logger.warning("vLLM service is not ready yet")
        return ready

    async def health_check(self) -> bool:
        return await self._probe("/health")
