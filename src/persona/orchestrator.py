import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Optional, Protocol

from .embedding import EmbeddingProvider
from .errors import EmbeddingError, GenerationError
from .loader import KnowledgeBase
from .rules import RuleMatcher
from .semantic import SemanticMatcher
from .types import ConversationContext, Hit, ResponseCandidate, Tier

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_TEXT = (
    "Forgive me, my thoughts are clouded at present. Put your question to me again in a little while."
)


class Generator(Protocol):
    async def generate(self, message: str, context: Optional[ConversationContext] = None) -> str:
        ...


class ResponseOrchestrator:
    """Answers a message with the first tier that yields usable text.

    Tiers run in a fixed order: curated rule, semantic match, generation,
    static fallback. Per-request failures only move the cascade forward, so
    ``respond`` always returns a ``ResponseCandidate``.

    Embedding calls run on a private pool of ``embed_workers`` threads. A call
    that overruns ``embed_timeout_sec`` keeps its thread until the provider
    returns, so a hung provider can occupy at most that many threads.
    """

    def __init__(
        self,
        rule_matcher: RuleMatcher,
        semantic_matcher: Optional[SemanticMatcher],
        generator: Optional[Generator],
        fallback_text: str = DEFAULT_FALLBACK_TEXT,
        embed_timeout_sec: float = 5.0,
        embed_workers: int = 4,
    ) -> None:
        if embed_workers < 1:
            raise ValueError(f"embed_workers must be at least 1, got {embed_workers}")
        self.rule_matcher = rule_matcher
        self.semantic_matcher = semantic_matcher
        self.generator = generator
        self.fallback_text = fallback_text
        self.embed_timeout_sec = embed_timeout_sec
        self._embed_pool = ThreadPoolExecutor(max_workers=embed_workers, thread_name_prefix="persona-embed")

    @classmethod
    def from_config(
        cls,
        config: Dict[str, Any],
        knowledge: KnowledgeBase,
        embedder: Optional[EmbeddingProvider],
        generator: Optional[Generator],
    ) -> "ResponseOrchestrator":
        strip_punctuation = config.get("normalize", {}).get("strip_punctuation", True)
        semantic_cfg = config.get("semantic", {})
        semantic_matcher = None
        if embedder is not None:
            semantic_matcher = SemanticMatcher(
                knowledge,
                embedder,
                threshold=float(semantic_cfg.get("threshold", 0.75)),
                strip_punctuation=strip_punctuation,
            )
        return cls(
            rule_matcher=RuleMatcher(knowledge, strip_punctuation=strip_punctuation),
            semantic_matcher=semantic_matcher,
            generator=generator,
            fallback_text=config.get("fallback", {}).get("text", DEFAULT_FALLBACK_TEXT),
            embed_timeout_sec=float(semantic_cfg.get("embed_timeout_sec", 5.0)),
            embed_workers=int(semantic_cfg.get("embed_workers", 4)),
        )

    async def respond(self, message: str, context: Optional[ConversationContext] = None) -> ResponseCandidate:
        context = context or ConversationContext()
        if not message.strip():
            return self._answered(self._fallback(), context)

        rule = self.rule_matcher.match(message)
        if isinstance(rule, Hit):
            return self._answered(ResponseCandidate(rule.entry.answer, Tier.RULE, 1.0), context, rule.entry.id)

        semantic = await self._semantic_match(message, context)
        if isinstance(semantic, Hit):
            candidate = ResponseCandidate(semantic.entry.answer, Tier.SEMANTIC, semantic.confidence)
            return self._answered(candidate, context, semantic.entry.id)

        if self.generator is not None:
            try:
                text = await self.generator.generate(message.strip(), context)
            except GenerationError as exc:
                logger.warning(
                    "Generative tier failed for session %s (%s): %s",
                    context.session_id, type(exc).__name__, exc,
                )
            except Exception:
                logger.exception("Generative tier raised unexpectedly for session %s", context.session_id)
            else:
                return self._answered(ResponseCandidate(text, Tier.GENERATIVE), context)

        return self._answered(self._fallback(), context)

    def respond_sync(self, message: str, context: Optional[ConversationContext] = None) -> ResponseCandidate:
        return asyncio.run(self.respond(message, context))

    def close(self) -> None:
        """Release the embedding pool without waiting for overrunning calls."""
        self._embed_pool.shutdown(wait=False)

    async def _semantic_match(self, message: str, context: ConversationContext) -> Optional[Hit]:
        if self.semantic_matcher is None:
            return None
        loop = asyncio.get_running_loop()
        try:
            result = await asyncio.wait_for(
                loop.run_in_executor(self._embed_pool, self.semantic_matcher.match, message),
                timeout=self.embed_timeout_sec,
            )
        except EmbeddingError as exc:
            logger.warning("Semantic tier unavailable for session %s: %s", context.session_id, exc)
            return None
        except asyncio.TimeoutError:
            logger.warning(
                "Semantic tier timed out after %.1fs for session %s", self.embed_timeout_sec, context.session_id
            )
            return None
        return result if isinstance(result, Hit) else None

    def _fallback(self) -> ResponseCandidate:
        return ResponseCandidate(self.fallback_text, Tier.FALLBACK)

    @staticmethod
    def _answered(
        candidate: ResponseCandidate, context: ConversationContext, entry_id: Optional[str] = None
    ) -> ResponseCandidate:
        if entry_id:
            logger.info(
                "Answered session %s with tier=%s entry=%s confidence=%.3f",
                context.session_id, candidate.tier.value, entry_id, candidate.confidence or 0.0,
            )
        else:
            logger.info("Answered session %s with tier=%s", context.session_id, candidate.tier.value)
        return candidate
