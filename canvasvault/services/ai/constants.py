"""AI request limits, provider model lists and catalog defaults."""

from canvasvault.core.enums import AIProvider

MAX_INPUT_LENGTH = 300
# Rough token estimate: 1 token ~ 4 characters
MAX_TOKEN_ESTIMATE = 200
CREDIT_COST_PER_REQUEST = 1

DEFAULT_PROVIDER = AIProvider.GEMINI.value
DEFAULT_MODEL = "gemini-2.0-flash-exp"

# Models accepted by /ai/generate
PROVIDER_MODELS: dict[str, tuple[str, ...]] = {
    AIProvider.GEMINI.value: (
        "gemini-2.0-flash-exp",
        "gemini-exp-1206",
        "gemini-3-pro-preview",
    ),
    AIProvider.PERPLEXITY.value: ("sonar", "sonar-pro"),
}

# Rows written to an empty model catalog
DEFAULT_SUPPORTED_MODELS: tuple[dict[str, str], ...] = (
    {
        "provider": "gemini",
        "name": "gemini-1.5-flash",
        "description": "Fast, cost-efficient multimodal model",
    },
    {
        "provider": "gemini",
        "name": "gemini-1.5-pro",
        "description": "High intelligence for complex tasks",
    },
    {
        "provider": "gemini",
        "name": "gemini-2.0-flash-exp",
        "description": "Next generation experimental model",
    },
    {
        "provider": "perplexity",
        "name": "sonar",
        "description": "Optimized for online search and chat",
    },
    {
        "provider": "perplexity",
        "name": "sonar-pro",
        "description": "Advanced reasoning and search",
    },
)


def get_constraints() -> dict:
    """Limits and supported models, as shown to clients."""
    return {
        "maxInputLength": MAX_INPUT_LENGTH,
        "maxTokenEstimate": MAX_TOKEN_ESTIMATE,
        "creditCostPerRequest": CREDIT_COST_PER_REQUEST,
        "supportedProviders": list(PROVIDER_MODELS),
        "supportedModels": {k: list(v) for k, v in PROVIDER_MODELS.items()},
    }
