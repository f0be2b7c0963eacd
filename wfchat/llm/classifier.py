import logging
from abc import ABC, abstractmethod
from typing import Optional
from langchain_core.output_parsers import StrOutputParser
from wfchat.llm.router import LLMRouter, llm_router

logger = logging.getLogger(__name__)

class UpstreamClassifier(ABC):
    """
    The language-model call behind intent extraction and question generation.
    Implementations may raise anything; callers bound them with a timeout and degrade.
    """

    @abstractmethod
    async def classify(self, prompt: str) -> str:
        """Returns the raw model text for a fully rendered prompt."""
        pass

class LLMClassifier(UpstreamClassifier):
    def __init__(self, use_case: str = "understanding", router: Optional[LLMRouter] = None):
        self.use_case = use_case
        self.router = router or llm_router

    async def classify(self, prompt: str) -> str:
        model, provider = await self.router.get_chat_model(self.use_case)
        chain = model | StrOutputParser()
        raw = await chain.ainvoke(prompt)
        logger.debug(f"Raw {provider} response ({self.use_case}): {raw}")
        return raw
