import logging
from typing import Any, Dict, Optional, Tuple

from .embedding import build_embedder
from .llm import GenerativeClient
from .loader import KnowledgeBase, load_knowledge
from .orchestrator import ResponseOrchestrator
from .prompt import load_persona_prompt

logger = logging.getLogger(__name__)


def build_orchestrator(
    config: Dict[str, Any],
    data_path: Optional[str] = None,
) -> Tuple[ResponseOrchestrator, KnowledgeBase]:
    """Wire every component from config. Raises ``LoadError`` on a bad knowledge source."""
    embedder = build_embedder(config)
    source = data_path or config.get("knowledge", {}).get("source", "data/knowledge.jsonl")
    strip_punctuation = config.get("normalize", {}).get("strip_punctuation", True)
    knowledge = load_knowledge(source, embedder.dimension, strip_punctuation=strip_punctuation)

    persona_prompt = load_persona_prompt(config.get("llm", {}).get("persona_prompt_path", "config/persona.txt"))
    generator = GenerativeClient.from_config(config, persona_prompt)
    if not generator.api_key:
        logger.warning("No API key for the generative backend; generative tier will always fall back")

    return ResponseOrchestrator.from_config(config, knowledge, embedder, generator), knowledge
