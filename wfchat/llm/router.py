import logging
from typing import Dict, List, Optional, Tuple
from langchain_core.language_models import BaseChatModel
from wfchat.core.errors import UpstreamClassifierError
from wfchat.core.settings import settings
from wfchat.llm.providers import LLMClient, default_clients

logger = logging.getLogger(__name__)

class LLMRouter:
    """
    Picks the first healthy provider of primary -> fallback -> production.
    The model depends on the use case ("understanding" or "probing").
    """

    def __init__(self, clients: Optional[Dict[str, LLMClient]] = None):
        self.clients = clients if clients is not None else default_clients()

    def provider_chain(self) -> List[str]:
        chain = []
        for provider in (
            settings.llm.primary_provider,
            settings.llm.fallback_provider,
            settings.llm.production_provider
        ):
            if provider and provider not in chain:
                chain.append(provider)
        return chain

    def model_for(self, use_case: str) -> Optional[str]:
        return {
            "understanding": settings.llm.understanding_model,
            "probing": settings.llm.probing_model,
        }.get(use_case)

    async def get_chat_model(self, use_case: str = "understanding") -> Tuple[BaseChatModel, str]:
        """
        Returns (ChatModel, provider_name). Raises UpstreamClassifierError when
        no provider in the chain is healthy.
        """
        target_model = self.model_for(use_case)

        for provider in self.provider_chain():
            client = self.clients.get(provider)
            if client is None:
                logger.warning(f"Provider {provider} is not registered, skipping")
                continue

            if await client.check_health():
                logger.info(f"Routing to {provider} for {use_case}")
                return client.get_chat_model(model_name=target_model, temperature=settings.llm.temperature), provider
            logger.warning(f"Provider {provider} unhealthy, falling back...")

        raise UpstreamClassifierError(
            f"No healthy LLM provider for {use_case}",
            details={"chain": self.provider_chain()}
        )

llm_router = LLMRouter()
