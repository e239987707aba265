from typing import Dict, List, Optional, Sequence
import math
import structlog

from ber.domain.errors import LLMFailureError, SkillNotFoundError
from ber.domain.skill.skill import Agent, BaseSkill
from ber.infrastructure.observability.logging import workflow_logger

logger = structlog.get_logger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Dot product of two vectors divided by the product of their norms"""

    if len(a) != len(b):
        raise ValueError(f"vectors must have same length, got {len(a)} and {len(b)}")

    dot_product = math.fsum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(math.fsum(x * x for x in a))
    norm_b = math.sqrt(math.fsum(y * y for y in b))

    if norm_a == 0 or norm_b == 0:
        raise ValueError("vector norm cannot be zero")

    # Clamp rounding noise so identical vectors never exceed 1.0
    return max(-1.0, min(1.0, dot_product / (norm_a * norm_b)))


class SkillMatcher:
    """Picks the skill of an agent whose prompt embedding is closest to a message.

    Skills are scanned in declaration order and a skill only replaces the
    current best when its similarity is strictly greater, so ties go to the
    earlier skill. The running best starts at ``threshold``: when no skill
    scores above it the match fails even though skills exist.
    """

    def __init__(self, client, threshold: float = 0.0):
        self.client = client
        self.threshold = threshold
        self._skill_embeddings: Dict[str, List[float]] = {}

    async def __call__(self, message: str, agent: Agent) -> BaseSkill:
        return await self.match(message, agent)

    async def match(self, message: str, agent: Agent) -> BaseSkill:
        """Return the best matching skill for message"""

        try:
            message_embedding = await self.client.get_embedding(message)
        except Exception as e:
            logger.error("Failed to get user message embedding", error=str(e))
            if isinstance(e, LLMFailureError):
                raise
            raise LLMFailureError(f"failed to get message embedding: {e}") from e

        best_skill: Optional[BaseSkill] = None
        highest_similarity = self.threshold
        scores: Dict[str, float] = {}

        for skill in agent.skills:
            try:
                skill_embedding = await self._get_skill_embedding(skill)
            except Exception as e:
                logger.error("Failed to get skill embedding", skill_tag=skill.tag, error=str(e))
                continue

            try:
                similarity = cosine_similarity(message_embedding, skill_embedding)
            except ValueError as e:
                logger.warning("Skipping skill with incomparable embedding", skill_tag=skill.tag, error=str(e))
                continue

            scores[skill.tag] = similarity
            if similarity > highest_similarity:
                highest_similarity = similarity
                best_skill = skill

        if best_skill is None:
            logger.error("No suitable skill found", agent_tag=agent.tag, scores=scores)
            raise SkillNotFoundError("no suitable skill found")

        workflow_logger.log_skill_match(
            agent_tag=agent.tag,
            skill_tag=best_skill.tag,
            similarity=highest_similarity,
            scores=scores,
        )
        return best_skill

    async def _get_skill_embedding(self, skill: BaseSkill) -> List[float]:
        cached = self._skill_embeddings.get(skill.prompt)
        if cached is not None:
            return cached

        embedding = list(await self.client.get_embedding(skill.prompt))
        self._skill_embeddings[skill.prompt] = embedding
        return embedding
