"""
Chat model factory.

LLM_PROVIDER selects the backend:
- lmstudio (default): a local LM Studio server through its OpenAI-compatible API
- anthropic: Claude via langchain-anthropic (needs ANTHROPIC_API_KEY)
"""

import logging

from langchain_core.language_models import BaseChatModel

from backend.config import Settings

logger = logging.getLogger(__name__)

_LMSTUDIO_API_KEY = "lm-studio"  # LM Studio ignores the key but the client requires one


def get_chat_model(settings: Settings) -> BaseChatModel:
    provider = settings.llm_provider

    if provider == "anthropic":
        from langchain_anthropic import ChatAnthropic

        logger.info("Using Anthropic model %s", settings.anthropic_model)
        return ChatAnthropic(model=settings.anthropic_model, max_tokens=4096)

    if provider == "lmstudio":
        from langchain_openai import ChatOpenAI

        logger.info("Using LM Studio model %s at %s", settings.lmstudio_model, settings.lmstudio_url)
        return ChatOpenAI(
            model=settings.lmstudio_model,
            base_url=settings.lmstudio_url,
            api_key=_LMSTUDIO_API_KEY,
            streaming=True,
        )

    raise ValueError(f"Unsupported LLM provider: {provider}")
