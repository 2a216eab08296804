from enum import Enum

from pydantic_settings import BaseSettings


class Env(Enum):
    local = "local"
    dev = "dev"
    prod = "prod"


class LLMBackend(Enum):
    ollama = "ollama"
    localai = "localai"
    vllm = "vllm"


class Config(BaseSettings):
    env: Env = Env.local
    db_url: str = "sqlite+aiosqlite:///recipes.db"
    log_level: str = "INFO"

    llm_backend: LLMBackend = LLMBackend.ollama
    llm_service_url: str = "http://localhost:11434"
    llm_model: str = "mistral"
    llm_fallback_model: str = "tinyllama"
    request_timeout: float = 30.0
    health_timeout: float = 2.0
    max_retries: int = 2
    backoff_base: float = 1.0

    breaker_threshold: int = 3
    breaker_retry_after: float = 300.0

    cache_ttl: float = 30 * 60
    cache_sweep_interval: float = 10 * 60
    cache_max_entries: int = 500

    result_limit: int = 20
    # Empty strings switch these biases off
    default_cuisine: str = "Jewish"
    default_ingredient: str = "chicken"
