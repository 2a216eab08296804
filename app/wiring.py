from databases import Database

from config import Config, LLMBackend
from finder.alocalai import LocalAIClient
from finder.aollama import OllamaClient
from finder.avllm import VLLMClient
from finder.breaker import AvailabilityBreaker
from finder.cache import ResultCache
from finder.completion import BaseCompletionClient
from finder.glossary import TermGlossary
from finder.orchestrator import SearchOrchestrator
from finder.repository import GlossaryRepository, RecipesRepository


def completion_client_factory(config: Config) -> BaseCompletionClient:
    kwargs = dict(
        base_url=config.llm_service_url,
        model=config.llm_model,
        fallback_model=config.llm_fallback_model,
        timeout=config.request_timeout,
        health_timeout=config.health_timeout,
        max_retries=config.max_retries,
        backoff_base=config.backoff_base,
    )
    match config.llm_backend:
        case LLMBackend.ollama:
            return OllamaClient(**kwargs)
        case LLMBackend.localai:
            return LocalAIClient(**kwargs)
        case LLMBackend.vllm:
            return VLLMClient(**kwargs)
        case _:
            raise ValueError(f"Unsupported LLM backend {config.llm_backend}")


def orchestrator_factory(config: Config, database: Database) -> SearchOrchestrator:
    return SearchOrchestrator(
        repository=RecipesRepository(database, limit=config.result_limit),
        glossary=TermGlossary(GlossaryRepository(database)),
        client=completion_client_factory(config),
        breaker=AvailabilityBreaker(
            config.breaker_threshold, retry_after=config.breaker_retry_after
        ),
        cache=ResultCache(ttl=config.cache_ttl, max_entries=config.cache_max_entries),
        limit=config.result_limit,
        default_cuisine=config.default_cuisine or None,
        default_ingredient=config.default_ingredient or None,
        sweep_interval=config.cache_sweep_interval,
    )
