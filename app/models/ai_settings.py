"""
AI Settings Models for Configuration Management
"""
import os
from typing import Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

# Request categories share the rate limiter and carry their own model tuning
RESUME_ANALYSIS = "resume_analysis"
LINKEDIN_PARSING = "linkedin_parsing"
SKILL_EXTRACTION = "skill_extraction"
MATCH_SCORING = "match_scoring"
GENERAL = "general"

# Retry / backoff constants
MAX_RETRIES = 3
RETRY_BASE_DELAY = 1.0
RETRY_JITTER = 1.0
LLM_TIMEOUT_SECONDS = 60
PROFILE_FETCH_TIMEOUT_SECONDS = 30

MAX_RESUME_BYTES = 10 * 1024 * 1024  # 10MB


class CategoryModelConfig(BaseModel):
    """Model tuning for one request category"""
    model: Optional[str] = Field(default=None, description="Overrides the default model when set")
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    top_p: float = Field(default=0.8, ge=0.0, le=1.0)
    max_tokens: int = Field(default=1500, ge=1)


def default_category_configs() -> Dict[str, CategoryModelConfig]:
    return {
        RESUME_ANALYSIS: CategoryModelConfig(temperature=0.3, top_p=0.9, max_tokens=2000),
        LINKEDIN_PARSING: CategoryModelConfig(temperature=0.2, top_p=0.8, max_tokens=1500),
        SKILL_EXTRACTION: CategoryModelConfig(temperature=0.1, top_p=0.7, max_tokens=1000),
        MATCH_SCORING: CategoryModelConfig(temperature=0.2, top_p=0.8, max_tokens=1500),
        GENERAL: CategoryModelConfig(),
    }


class LLMSettings(BaseModel):
    """LLM Configuration Settings"""
    enabled: bool = Field(default=True, description="Disable to run local scoring only")
    model_name: str = Field(default="llama3.1:8b", description="LLM model name")
    base_url: str = Field(default="http://localhost:11434", description="Ollama-compatible base URL")
    api_key: Optional[str] = Field(default=None, description="Bearer token for hosted gateways")
    timeout: int = Field(default=LLM_TIMEOUT_SECONDS, ge=1, le=300, description="Request timeout in seconds")
    categories: Dict[str, CategoryModelConfig] = Field(default_factory=default_category_configs)

    @field_validator('base_url')
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip("/")

    def for_category(self, category: str) -> CategoryModelConfig:
        return self.categories.get(category) or self.categories.get(GENERAL) or CategoryModelConfig()


class RetrySettings(BaseModel):
    """Retry policy for transient external failures"""
    max_attempts: int = Field(default=MAX_RETRIES, ge=1, le=10)
    base_delay: float = Field(default=RETRY_BASE_DELAY, ge=0.0, le=60.0)
    jitter: float = Field(default=RETRY_JITTER, ge=0.0, le=10.0)


class RateLimitSettings(BaseModel):
    """Per-minute request ceilings keyed by request category"""
    per_minute: Dict[str, int] = Field(default_factory=lambda: {
        RESUME_ANALYSIS: 20,
        LINKEDIN_PARSING: 30,
        SKILL_EXTRACTION: 40,
        MATCH_SCORING: 15,
        GENERAL: 50,
    })

    @field_validator('per_minute')
    @classmethod
    def validate_limits(cls, v):
        for category, limit in v.items():
            if limit < 1:
                raise ValueError(f'Limit for "{category}" must be at least 1')
        return v


class ServiceSettings(BaseModel):
    """Complete service configuration"""
    mongo_details: str = Field(default="mongodb://localhost:27017")
    db_name: str = Field(default="candidate_match_db")
    max_resume_bytes: int = Field(default=MAX_RESUME_BYTES, ge=1)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    rate_limits: RateLimitSettings = Field(default_factory=RateLimitSettings)


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() not in {"0", "false", "no", "off"}


def _rate_limits_from_env() -> RateLimitSettings:
    """Defaults overridden per category by RATE_LIMIT_<CATEGORY>, e.g. RATE_LIMIT_MATCH_SCORING=30"""
    limits = RateLimitSettings().per_minute
    for category in limits:
        value = os.getenv(f"RATE_LIMIT_{category.upper()}")
        if value and value.strip():
            limits[category] = int(value)
    return RateLimitSettings(per_minute=limits)


def load_settings() -> ServiceSettings:
    """Build settings from environment variables (and .env when present)"""
    load_dotenv()
    return ServiceSettings(
        mongo_details=os.getenv("MONGO_DETAILS", "mongodb://localhost:27017"),
        db_name=os.getenv("DB_NAME", "candidate_match_db"),
        llm=LLMSettings(
            enabled=_env_flag("LLM_ENABLED", "true"),
            model_name=os.getenv("LLM_MODEL", "llama3.1:8b"),
            base_url=os.getenv("LLM_BASE_URL", "http://localhost:11434"),
            api_key=os.getenv("LLM_API_KEY") or None,
            timeout=int(os.getenv("LLM_TIMEOUT", str(LLM_TIMEOUT_SECONDS))),
        ),
        rate_limits=_rate_limits_from_env(),
    )
