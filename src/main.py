"""Interactive terminal chat with the persona."""

import argparse
import sys
from pathlib import Path

from persona import ConversationContext, Message
from persona.config import configure_logging, load_config
from persona.errors import LoadError
from persona.factory import build_orchestrator


def main() -> None:
    parser = argparse.ArgumentParser(description="Chat with the persona from the terminal.")
    parser.add_argument("--config", default="config/pipeline.json", help="Path to config file.")
    parser.add_argument("--data", default=None, help="Path to knowledge jsonl file.")
    args = parser.parse_args()

    config = load_config(args.config)
    configure_logging(config)
    data_path = args.data or config.get("knowledge", {}).get("source", "")
    if not data_path or not Path(data_path).exists():
        print(f"Knowledge source not found: {data_path or '(unset)'}")
        print("Build it with scripts/build_knowledge.py or pass --data.")
        return

    try:
        orchestrator, knowledge = build_orchestrator(config, data_path)
    except LoadError as exc:
        print(f"Cannot start: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    turns: list = []
    print(f"Persona ready with {len(knowledge)} curated answers. Type 'exit' to quit.")
    while True:
        try:
            user_input = input("you> ").strip()
        except (EOFError, KeyboardInterrupt):
            break
        if not user_input or user_input.lower() in {"exit", "quit"}:
            break
        context = ConversationContext(prior_turns=tuple(turns), session_id="cli")
        response = orchestrator.respond_sync(user_input, context)
        print(f"[{response.tier.value}] {response.text}")
        turns.append(Message(speaker="user", text=user_input))
        turns.append(Message(speaker="persona", text=response.text))
    orchestrator.close()


if __name__ == "__main__":
    main()
