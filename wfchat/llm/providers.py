from abc import ABC, abstractmethod
from typing import Dict, Optional
import httpx
from langchain_core.language_models import BaseChatModel
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_groq import ChatGroq
from langchain_openai import ChatOpenAI
from wfchat.core.settings import settings


class LLMClient(ABC):
    """
    One chat model provider. Models are built per call with the classifier
    deadline as request timeout; the caller bounds the call, so no retries.
    """

    name: str = ""

    @property
    @abstractmethod
    def default_model(self) -> str:
        pass

    @abstractmethod
    def _build(self, model: str, temperature: float, timeout: float) -> BaseChatModel:
        pass

    @abstractmethod
    async def check_health(self) -> bool:
        """Cheap availability check used by the router's fallback chain."""
        pass

    def get_chat_model(self, model_name: Optional[str] = None, temperature: float = 0.0) -> BaseChatModel:
        return self._build(
            model_name or self.default_model,
            temperature,
            settings.dialogue.classifier_timeout_seconds
        )


class GroqClient(LLMClient):
    name = "groq"

    @property
    def default_model(self) -> str:
        return settings.groq.default_model

    def _build(self, model, temperature, timeout):
        return ChatGroq(
            api_key=settings.groq.api_key,
            base_url=settings.groq.base_url,
            model=model,
            temperature=temperature,
            timeout=timeout,
            max_retries=0
        )

    async def check_health(self) -> bool:
        # No round trip; a configured key counts as available
        return bool(settings.groq.api_key)


class GeminiClient(LLMClient):
    name = "gemini"

    @property
    def default_model(self) -> str:
        return settings.gemini.default_model

    def _build(self, model, temperature, timeout):
        return ChatGoogleGenerativeAI(
            google_api_key=settings.gemini.api_key,
            model=model,
            temperature=temperature,
            timeout=timeout,
            max_retries=0
        )

    async def check_health(self) -> bool:
        return bool(settings.gemini.api_key)


class SelfHostedClient(LLMClient):
    """Any OpenAI-compatible server (vLLM, Ollama, LM Studio)."""

    name = "self_hosted"

    @property
    def default_model(self) -> str:
        return settings.self_hosted.default_model

    def _build(self, model, temperature, timeout):
        return ChatOpenAI(
            base_url=settings.self_hosted.base_url,
            api_key=settings.self_hosted.api_key,
            model=model,
            temperature=temperature,
            timeout=timeout,
            max_retries=0
        )

    async def check_health(self) -> bool:
        try:
            async with httpx.AsyncClient(timeout=2.0) as client:
                resp = await client.get(f"{settings.self_hosted.base_url}/models")
                return resp.status_code == 200
        except httpx.HTTPError:
            return False


def default_clients() -> Dict[str, LLMClient]:
    clients = [GroqClient(), GeminiClient(), SelfHostedClient()]
    return {client.name: client for client in clients}
