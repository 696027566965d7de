from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from .config import configure_logging, load_config
from .factory import build_orchestrator
from .orchestrator import ResponseOrchestrator
from .types import ConversationContext


def create_app(
    config_path: str = "config/pipeline.json",
    data_path: Optional[str] = None,
    orchestrator: Optional[ResponseOrchestrator] = None,
    entry_count: Optional[int] = None,
) -> FastAPI:
    owns_orchestrator = orchestrator is None
    if orchestrator is None:
        cfg = load_config(config_path)
        configure_logging(cfg)
        orchestrator, knowledge = build_orchestrator(cfg, data_path)
        entry_count = len(knowledge)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        if owns_orchestrator:
            orchestrator.close()

    app = FastAPI(lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post("/chat")
    async def chat(request: Request) -> Dict[str, Any]:
        try:
            payload = await request.json()
        except ValueError:
            raise HTTPException(status_code=400, detail="Body must be JSON")
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Body must be a JSON object")
        message = payload.get("message")
        if not isinstance(message, str) or not message.strip():
            raise HTTPException(status_code=400, detail="message is required")

        history = payload.get("history")
        context = ConversationContext.from_turns(
            history if isinstance(history, list) else [],
            session_id=payload.get("session_id"),
        )
        response = await orchestrator.respond(message, context)
        return response.to_dict()

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        return {"status": "ok", "entries": entry_count}

    return app


if __name__ == "__main__":
    import uvicorn

    server_cfg = load_config("config/pipeline.json").get("server", {})
    uvicorn.run(create_app(), host=server_cfg.get("host", "0.0.0.0"), port=int(server_cfg.get("port", 9000)))
