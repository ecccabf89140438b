"""
Upstream LLM providers.

Modules:
- glm_client: Zhipu GLM chat completions (card text)
- gemini_client: Google Gemini generateContent (card text + illustrations)
- registry: builds configured clients in fallback order
"""
from .gemini_client import GeminiClient
from .glm_client import GLMClient
from .registry import ProviderRegistry

__all__ = ["GeminiClient", "GLMClient", "ProviderRegistry"]
