"""
Connection client for the AI providers used by report generation.
Only answers whether the configured providers are reachable; report content is
generated by the report workers, not by this service.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_groq import ChatGroq
from langchain_openai import ChatOpenAI
from langchain_core.messages import HumanMessage

from ..core.config import settings
from ..models.status import ConnectionCheck

logger = logging.getLogger(__name__)

PING_MAX_TOKENS = 5


class AIProvider(str, Enum):
    """Supported AI providers."""
    GEMINI = "gemini"
    GROQ = "groq"
    OPENAI = "openai"


class AIConnectionClient:
    """Dependency-status collaborator backed by LangChain chat models."""

    def __init__(self, models: Optional[Dict[AIProvider, Any]] = None):
        self.models: Dict[AIProvider, Any] = {}
        if models is not None:
            self.models.update(models)
        else:
            self._initialize_providers()

    def _initialize_providers(self):
        """Initialize every provider that has credentials configured."""
        timeout = settings.STATUS_PROBE_TIMEOUT_SECONDS

        if settings.GEMINI_API_KEY:
            try:
                self.models[AIProvider.GEMINI] = ChatGoogleGenerativeAI(
                    google_api_key=settings.GEMINI_API_KEY,
                    model=settings.GEMINI_MODEL,
                    max_output_tokens=PING_MAX_TOKENS,
                    timeout=timeout,
                )
                logger.info("Gemini provider initialized successfully")
            except Exception as e:
                logger.warning(f"Failed to initialize Gemini: {e}")

        if settings.GROQ_API_KEY:
            try:
                self.models[AIProvider.GROQ] = ChatGroq(
                    api_key=settings.GROQ_API_KEY,
                    model=settings.GROQ_MODEL,
                    max_tokens=PING_MAX_TOKENS,
                    timeout=timeout,
                )
                logger.info("Groq provider initialized successfully")
            except Exception as e:
                logger.warning(f"Failed to initialize Groq: {e}")

        if settings.OPENAI_API_KEY:
            try:
                self.models[AIProvider.OPENAI] = ChatOpenAI(
                    api_key=settings.OPENAI_API_KEY,
                    model=settings.OPENAI_MODEL,
                    max_completion_tokens=PING_MAX_TOKENS,
                    timeout=timeout,
                )
                logger.info("OpenAI provider initialized successfully")
            except Exception as e:
                logger.warning(f"Failed to initialize OpenAI: {e}")

        if not self.models:
            logger.warning("No AI providers configured; reports will use basic analysis only")

    def _get_provider_order(self) -> List[AIProvider]:
        """Primary provider first, then any other configured provider."""
        order = []
        primary = getattr(AIProvider, settings.PRIMARY_AI_PROVIDER.upper(), None)
        if primary and primary in self.models:
            order.append(primary)
        for provider in AIProvider:
            if provider in self.models and provider not in order:
                order.append(provider)
        return order

    async def test_connection(self) -> ConnectionCheck:
        """Send a minimal prompt to the first configured provider."""
        order = self._get_provider_order()
        if not order:
            return ConnectionCheck(ok=False, error_detail="No AI providers configured")
        provider = order[0]
        try:
            await self.models[provider].ainvoke([HumanMessage(content="ping")])
            return ConnectionCheck(ok=True)
        except Exception as e:
            logger.warning(f"AI provider {provider.value} connection test failed: {e}")
            return ConnectionCheck(ok=False, error_detail=f"{type(e).__name__}: {e}")


# Global AI connection client instance
ai_connection_client = AIConnectionClient()
