"""Uniform access to local text-completion servers.

Every backend adapter subclasses `BaseCompletionClient` and only implements the
wire format (`_generate`), the probes (`health_check`) and model residency
(`ensure_model_available`). Timeouts, retries with exponential backoff and the
one-off downgrade to a smaller model after an out-of-memory error live here.

`generate_completion` never raises. Callers check `Completion.ok`, never the
text, to tell success from failure.
"""

import abc
import asyncio
import logging
from typing import Any, Awaitable, Callable, Protocol, Self, TypeAlias

import httpx

from finder.errors import (
    ModelConnectionRefused,
    ModelError,
    ModelMemoryExceeded,
    ModelTimeout,
    ModelUnavailable,
)


logger = logging.getLogger(__name__)


REQUEST_TIMEOUT = 30.0
HEALTH_TIMEOUT = 2.0
MAX_RETRIES = 2
BACKOFF_BASE = 1.0
FALLBACK_MODEL = "tinyllama"

MEMORY_ERROR_MARKER = "requires more system memory"


Sleep: TypeAlias = Callable[[float], Awaitable[None]]


class CompletionOptions:
    def __init__(
        self,
        *,
        temperature: float = 0.7,
        max_tokens: int = 800,
        top_p: float = 0.9,
    ) -> None:
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.top_p = top_p

    def to_dict(self) -> dict[str, Any]:
        return {
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "top_p": self.top_p,
        }


class Completion:
    def __init__(self, text: str, *, error: ModelError | None = None) -> None:
        self.text = text
        self.error = error

    @classmethod
    def failure(cls, error: ModelError) -> Self:
        return cls(f"Error generating AI response: {error}", error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def __repr__(self) -> str:
        if self.ok:
            return f"<Completion(ok, {self.text[:40]!r})>"
        return f"<Completion(failed, {type(self.error).__name__})>"


class CompletionClient(Protocol):
    model: str

    async def generate_completion(
        self, prompt: str, options: CompletionOptions | None = None
    ) -> Completion:
        ...

    async def health_check(self) -> bool:
        ...

    async def ensure_model_available(self) -> bool:
        ...

    def set_model(self, name: str) -> None:
        ...

    async def aclose(self) -> None:
        ...


def error_from_text(text: str) -> ModelError:
    lowered = text.lower()
    if MEMORY_ERROR_MARKER in lowered:
        return ModelMemoryExceeded(text)
    if "model" in lowered and "not found" in lowered:
        return ModelUnavailable(text)
    return ModelError(text)


def classify_http_error(exc: Exception, *, backend: str) -> ModelError:
    match exc:
        case ModelError():
            return exc
        case httpx.TimeoutException():
            return ModelTimeout(f"The {backend} request timed out.")
        case httpx.ConnectError():
            return ModelConnectionRefused(
                f"Connection refused to {backend}. Is the service running?"
            )
        case httpx.HTTPStatusError():
            return error_from_text(
                f"Invalid response from {backend}: "
                f"{exc.response.status_code} {exc.response.text}"
            )
        case _:
            return ModelError(f"{type(exc).__name__}: {exc}")


async def retry_with_backoff(
    call: Callable[[], Awaitable[str]],
    *,
    classify: Callable[[Exception], ModelError],
    max_retries: int = MAX_RETRIES,
    backoff_base: float = BACKOFF_BASE,
    sleep: Sleep = asyncio.sleep,
    label: str = "completion",
) -> Completion:
    """Run `call` until it returns text.

    Only timeouts and refused connections are retried, sequentially, waiting
    `backoff_base * 2**attempt` seconds in between.
    """
    attempt = 0
    while True:
        try:
            text = await call()
        except Exception as e:
            error = classify(e)
        else:
            if text:
                return Completion(text)
            error = ModelError("Empty or invalid response from model")

        retryable = isinstance(error, (ModelTimeout, ModelConnectionRefused))
        if not retryable or attempt >= max_retries:
            logger.error(
                "%s failed (attempt %d/%d): %s",
                label,
                attempt + 1,
                max_retries + 1,
                error,
            )
            return Completion.failure(error)

        delay = backoff_base * 2**attempt
        logger.warning(
            "%s failed (attempt %d/%d), retrying in %.1fs: %s",
            label,
            attempt + 1,
            max_retries + 1,
            delay,
            error,
        )
        await sleep(delay)
        attempt += 1


class BaseCompletionClient(abc.ABC):
    name = "completion"
    default_url = "http://localhost:11434"
    default_model = "mistral"

    def __init__(
        self,
        *,
        base_url: str | None = None,
        model: str | None = None,
        fallback_model: str = FALLBACK_MODEL,
        timeout: float = REQUEST_TIMEOUT,
        health_timeout: float = HEALTH_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        backoff_base: float = BACKOFF_BASE,
        client: httpx.AsyncClient | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.base_url = self.default_url if base_url is None else base_url
        self.model = self.default_model if model is None else model
        self.fallback_model = fallback_model
        self.timeout = timeout
        self.health_timeout = health_timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self._client = (
            httpx.AsyncClient(base_url=self.base_url, timeout=timeout)
            if client is None
            else client
        )
        self._sleep = sleep
        # Set after the first residency check, successful or not, so a failing
        # provisioning attempt is not repeated on every request.
        self._model_checked = False
        logger.info(
            "Initializing %s client with URL: %s and model: %s",
            self.name,
            self.base_url,
            self.model,
        )

    def set_model(self, name: str) -> None:
        if name and name != self.model:
            logger.info("Changed %s model to: %s", self.name, name)
            self.model = name
            self._model_checked = False

    async def generate_completion(
        self, prompt: str, options: CompletionOptions | None = None
    ) -> Completion:
        options = CompletionOptions() if options is None else options
        if not self._model_checked:
            await self.ensure_model_available()

        model = self.model
        logger.info(
            "Sending prompt to %s (model: %s): %s...", self.name, model, prompt[:50]
        )
        completion = await self._complete(prompt, options, model)

        if (
            isinstance(completion.error, ModelMemoryExceeded)
            and model != self.fallback_model
        ):
            logger.warning(
                "Model %s too large for available memory. Retrying with %s",
                model,
                self.fallback_model,
            )
            completion = await self._complete(prompt, options, self.fallback_model)
        return completion

    async def _complete(
        self, prompt: str, options: CompletionOptions, model: str
    ) -> Completion:
        async def attempt() -> str:
            return await self._generate(prompt, options, model)

        return await retry_with_backoff(
            attempt,
            classify=self._classify_error,
            max_retries=self.max_retries,
            backoff_base=self.backoff_base,
            sleep=self._sleep,
            label=f"{self.name} completion",
        )

    @abc.abstractmethod
    async def _generate(
        self, prompt: str, options: CompletionOptions, model: str
    ) -> str: ...

    def _classify_error(self, exc: Exception) -> ModelError:
        return classify_http_error(exc, backend=self.name)

    async def _probe(self, path: str) -> bool:
        try:
            resp = await self._client.get(path, timeout=self.health_timeout)
        except httpx.HTTPError as e:
            logger.info("%s health probe %s failed: %r", self.name, path, e)
            return False
        return resp.status_code == 200

    @abc.abstractmethod
    async def health_check(self) -> bool: ...

    @abc.abstractmethod
    async def ensure_model_available(self) -> bool: ...

    async def aclose(self) -> None:
        await self._client.aclose()
