"""Catalogue of model identifiers a tenant may be configured with."""

from dataclasses import dataclass

from app.core.config import settings

PLANS = ("starter", "pro", "agency", "enterprise")


@dataclass(frozen=True)
class ModelDefinition:
    id: str  # "<provider>/<model-name>"
    display_name: str
    provider: str
    default_for_plan: str | None = None


MODELS: list[ModelDefinition] = [
    ModelDefinition("openai/gpt-5-nano", "GPT-5 Nano", "openai", default_for_plan="starter"),
    ModelDefinition("openai/gpt-5", "GPT-5", "openai"),
    ModelDefinition("anthropic/claude-haiku-4-5", "Claude Haiku", "anthropic"),
    ModelDefinition("anthropic/claude-sonnet-4-5", "Claude Sonnet", "anthropic"),
    ModelDefinition("google/gemini-2.0-flash", "Gemini Flash", "google"),
]


def get_model_by_id(model_id: str) -> ModelDefinition | None:
    return next((m for m in MODELS if m.id == model_id), None)


def get_default_model_for_plan(plan: str) -> ModelDefinition:
    """Model marked as the plan default, else DEFAULT_AI_MODEL, else the first catalogue entry."""
    plan_default = next((m for m in MODELS if m.default_for_plan == plan), None)
    return plan_default or get_model_by_id(settings.default_ai_model) or MODELS[0]


def is_valid_model(model_id: str) -> bool:
    return get_model_by_id(model_id) is not None
