from .loader import KnowledgeBase, load_knowledge
from .orchestrator import ResponseOrchestrator
from .types import ConversationContext, Message, ResponseCandidate, Tier

__all__ = [
    "ConversationContext",
    "KnowledgeBase",
    "Message",
    "ResponseCandidate",
    "ResponseOrchestrator",
    "Tier",
    "load_knowledge",
]
