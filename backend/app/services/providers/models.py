"""
Cross-provider model resolution.

When a request fails over to another provider, the requested model is
swapped for an equivalent of the same quality/cost tier on that provider
(a fast/cheap model maps to the other provider's fast/cheap model, not its
flagship). Resolution is two steps: exact crossover lookup, then the target
provider's default model.

The table lives in a versioned JSON resource (model_crossover.json). Set
MODEL_CROSSOVER_PATH to load a different file.
"""
import json
import os
from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, ValidationError, model_validator

from app.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CROSSOVER_PATH = Path(__file__).parent / "model_crossover.json"


class CrossoverConfig(BaseModel):
    """
    Schema of the crossover resource.

    {
      "version": "2025.1",
      "primary_provider": "gemini",
      "provider_prefixes": {"openai": "openai/"},
      "default_models": {"gemini": "...", "openai": "..."},
      "crossover": {"google/gemini-2.5-pro": "openai/gpt-5", ...}
    }
    """

    version: str
    primary_provider: str
    provider_prefixes: Dict[str, str]
    default_models: Dict[str, str]
    crossover: Dict[str, str] = {}

    @model_validator(mode="after")
    def check_defaults(self) -> "CrossoverConfig":
        providers = {self.primary_provider, *self.provider_prefixes}
        missing = sorted(p for p in providers if p not in self.default_models)
        if missing:
            raise ValueError(f"default_models missing providers: {missing}")
        return self


class ModelResolver:
    """Deterministic model-equivalence mapping across providers."""

    def __init__(self, config: CrossoverConfig):
        self.config = config

    @property
    def version(self) -> str:
        return self.config.version

    @property
    def providers(self) -> list:
        return list(self.config.default_models)

    def native_provider(self, model: str) -> str:
        """Infer a model's provider from its name prefix; unprefixed names belong to the primary provider."""
        for provider, prefix in self.config.provider_prefixes.items():
            if model.startswith(prefix):
                return provider
        return self.config.primary_provider

    def resolve(self, target_provider: str, requested_model: str) -> str:
        """
        Return the model to use when calling target_provider.

        Raises:
            KeyError if target_provider has no configured default and the
            requested model has no crossover entry.
        """
        if target_provider == self.native_provider(requested_model):
            return requested_model

        mapped = self.config.crossover.get(requested_model)
        if mapped is not None:
            return mapped

        return self.config.default_models[target_provider]


def load_crossover_config(path: Optional[Path] = None) -> CrossoverConfig:
    """
    Load and validate the crossover resource.

    Raises:
        ValueError if the file is missing required fields.
    """
    if path is None:
        path = Path(os.getenv("MODEL_CROSSOVER_PATH") or DEFAULT_CROSSOVER_PATH)

    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)

    try:
        config = CrossoverConfig.model_validate(raw)
    except ValidationError as exc:
        logger.error("model_crossover_invalid", path=str(path), error=str(exc))
        raise ValueError(f"Invalid model crossover config at {path}") from exc

    logger.info(
        "model_crossover_loaded",
        path=str(path),
        version=config.version,
        mappings=len(config.crossover),
    )
    return config


_model_resolver: Optional[ModelResolver] = None


def get_model_resolver() -> ModelResolver:
    """Global singleton accessor."""
    global _model_resolver
    if _model_resolver is None:
        _model_resolver = ModelResolver(load_crossover_config())
    return _model_resolver
