from pathlib import Path
from typing import Dict, List

from .types import ConversationContext

USER_SPEAKERS = {"user", "human"}


def load_persona_prompt(path: str) -> str:
    prompt_path = Path(path)
    if not prompt_path.exists():
        raise FileNotFoundError(f"Persona prompt not found: {prompt_path}")
    return prompt_path.read_text(encoding="utf-8").strip()


def build_chat_messages(
    persona_prompt: str,
    message: str,
    context: ConversationContext,
    max_turns: int = 6,
) -> List[Dict[str, str]]:
    messages = [{"role": "system", "content": persona_prompt}]
    turns = list(context.prior_turns)
    if max_turns > 0:
        turns = turns[-max_turns:]
    for turn in turns:
        role = "user" if turn.speaker.lower() in USER_SPEAKERS else "assistant"
        messages.append({"role": role, "content": turn.text})
    messages.append({"role": "user", "content": message})
    return messages
