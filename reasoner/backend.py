# reasoner/backend.py
from abc import ABC, abstractmethod
from typing import Any, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import AzureChatOpenAI

from reasoner import config
from runner.errors import ReasonerResponseError, ReasonerUnavailableError
from runner.logger import log

SYSTEM_PROMPT = (
    "You operate a mobile game on behalf of a player. "
    "You answer with a single line and nothing else."
)

class CompletionBackend(ABC):
    """A text-completion service. It may be slow, unavailable or wrong."""

    @property
    @abstractmethod
    def is_ready(self) -> bool:
        ...

    @abstractmethod
    async def complete_text(self, prompt: str) -> str:
        ...

class LangChainCompletionBackend(CompletionBackend):
    """
    Completion backend over any LangChain chat model. Without an explicit
    model it builds an Azure OpenAI deployment from reasoner.config, or stays
    not-ready when no key is configured.
    """

    def __init__(self, llm: Optional[Any] = None):
        self.llm = llm if llm is not None else self._default_llm()

    @staticmethod
    def _default_llm():
        if not config.REASONER_ENABLED or not config.AZURE_OPENAI_KEY:
            log("INFO", "reasoner_disabled", "No reasoning backend configured; heuristics only")
            return None
        try:
            return AzureChatOpenAI(
                azure_endpoint=config.AZURE_OPENAI_BASE,
                api_key=config.AZURE_OPENAI_KEY,
                azure_deployment=config.AZURE_DEPLOYMENT,
                api_version=config.AZURE_API_VERSION,
                temperature=0,
                max_tokens=config.REASONER_MAX_TOKENS,
            )
        except Exception as e:
            log("ERROR", "reasoner_init_failed", "Failed to create chat model", error=str(e))
            return None

    @property
    def is_ready(self) -> bool:
        return self.llm is not None

    async def complete_text(self, prompt: str) -> str:
        if self.llm is None:
            raise ReasonerUnavailableError("Reasoning backend is not initialized")
        response = await self.llm.ainvoke([SystemMessage(content=SYSTEM_PROMPT), HumanMessage(content=prompt)])
        content = getattr(response, "content", response)
        if not isinstance(content, str):
            raise ReasonerResponseError(f"Unexpected completion payload: {type(content).__name__}")
        return content
