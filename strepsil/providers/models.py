"""
Provider model configurations.

Each provider has a list of available models with display names. These seed
the ai_providers table on first start; the stored list is the source of
truth afterwards.
"""
from strepsil.providers.pricing import DEFAULT_PRICING

# Format: {provider: [(model_id, display_name), ...]}
PROVIDER_MODELS = {
    "OpenAI": [
        ("gpt-4o", "GPT-4o"),
        ("gpt-4o-mini", "GPT-4o Mini"),
        ("gpt-4-turbo", "GPT-4 Turbo"),
        ("gpt-4", "GPT-4"),
        ("gpt-3.5-turbo", "GPT-3.5 Turbo"),
    ],
    "Anthropic": [
        ("claude-3-5-sonnet-20241022", "Claude 3.5 Sonnet"),
        ("claude-3-5-haiku-20241022", "Claude 3.5 Haiku"),
        ("claude-3-opus-20240229", "Claude 3 Opus"),
        ("claude-3-haiku-20240307", "Claude 3 Haiku"),
    ],
    "OpenRouter": [
        ("openai/gpt-4o", "GPT-4o (via OpenRouter)"),
        ("anthropic/claude-3.5-sonnet", "Claude 3.5 Sonnet (via OpenRouter)"),
    ],
    "Perplexity": [
        ("llama-3.1-sonar-small-128k-online", "Sonar Small (Online)"),
        ("llama-3.1-sonar-large-128k-online", "Sonar Large (Online)"),
    ],
}


def get_default_provider_configs() -> list[dict]:
    """
    Build the seed configuration for every known provider.

    Returns:
        List of {"name", "models", "pricing"} dicts ready for storage
    """
    configs = []
    for provider, models in PROVIDER_MODELS.items():
        prices = DEFAULT_PRICING.get(provider, {})
        configs.append({
            "name": provider,
            "models": [{"id": model_id, "name": display} for model_id, display in models],
            "pricing": {
                model_id: {"input": rate_in, "output": rate_out}
                for model_id, (rate_in, rate_out) in prices.items()
            },
        })
    return configs
