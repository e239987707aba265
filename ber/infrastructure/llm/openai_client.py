from typing import Any, List, Optional, Protocol, Sequence, Type
import structlog

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI, OpenAIEmbeddings

from ber.domain.errors import LLMFailureError
from ber.domain.models.agent_state import ChatMessage, ChatRole
from ber.infrastructure.config import BerSettings, get_settings

logger = structlog.get_logger(__name__)


class LLMClient(Protocol):
    """Primitives the workflow engine needs from a language model"""

    async def query_with_schema(self, messages: Sequence[ChatMessage], schema: Type[Any]) -> Any:
        ...

    async def get_embedding(self, text: str) -> List[float]:
        ...


def to_langchain_messages(messages: Sequence[ChatMessage]) -> List[BaseMessage]:
    """Convert chat messages to LangChain message objects"""

    converted: List[BaseMessage] = []
    for message in messages:
        if message.role == ChatRole.SYSTEM:
            converted.append(SystemMessage(content=message.content))
        elif message.role == ChatRole.ASSISTANT:
            converted.append(AIMessage(content=message.content))
        else:
            converted.append(HumanMessage(content=message.content))
    return converted


class OpenAIClient:
    """OpenAI-backed structured queries and embeddings"""

    def __init__(
        self,
        settings: Optional[BerSettings] = None,
        chat_model: Optional[ChatOpenAI] = None,
        embeddings: Optional[OpenAIEmbeddings] = None,
    ):
        self.settings = settings or get_settings()
        self._chat_model = chat_model
        self._embeddings = embeddings

    @property
    def chat_model(self) -> ChatOpenAI:
        if self._chat_model is None:
            self._chat_model = ChatOpenAI(
                model=self.settings.chat_model,
                api_key=self.settings.openai_api_key,
                temperature=0,
            )
        return self._chat_model

    @property
    def embeddings(self) -> OpenAIEmbeddings:
        if self._embeddings is None:
            self._embeddings = OpenAIEmbeddings(
                model=self.settings.embedding_model,
                api_key=self.settings.openai_api_key,
            )
        return self._embeddings

    async def query_with_schema(self, messages: Sequence[ChatMessage], schema: Type[Any]) -> Any:
        """Ask the model for a response constrained to schema"""

        structured_model = self.chat_model.with_structured_output(schema, method="json_schema", strict=True)

        try:
            response = await structured_model.ainvoke(to_langchain_messages(messages))
        except Exception as e:
            logger.error("Structured query failed", schema=getattr(schema, "__name__", str(schema)), error=str(e))
            raise LLMFailureError(f"OpenAI API error: {e}") from e

        if response is None:
            raise LLMFailureError("failed to parse response: model returned no structured output")
        return response

    async def get_embedding(self, text: str) -> List[float]:
        """Embedding vector for text"""

        try:
            embedding = await self.embeddings.aembed_query(text)
        except Exception as e:
            logger.error("Embedding request failed", error=str(e))
            raise LLMFailureError(f"failed to get embedding: {e}") from e

        if not embedding:
            raise LLMFailureError("no embeddings returned from API")
        return embedding
