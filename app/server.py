"""
Nigeria Tax Chatbot - Web API Server
-------------------------------------
FastAPI server that wraps the QueryPipeline.

Endpoints:
  GET  /        -> {"message": "Nigeria Tax Chatbot API"}
  GET  /health  -> "OK"
  POST /chat    -> {"answer", "sources"} | 400 / 500 {"error"}

Run from the project root:
    uvicorn app.server:app --reload --port 5000

The pipeline is built from config/config.yaml and .env at startup unless
one is passed to create_app().
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from functools import partial
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from loguru import logger
from pydantic import BaseModel

from taxrag.config import Settings, load_settings
from taxrag.errors import GENERIC_QUERY_ERROR
from taxrag.serving.pipeline import MISSING_QUESTION_ERROR, QueryPipeline
from taxrag.utils.helpers import truncate_text

API_BANNER = "Nigeria Tax Chatbot API"


# ---------------------------------------------------------------------------
# Request model
# ---------------------------------------------------------------------------

class ChatRequest(BaseModel):
    message: Optional[str] = None


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app(
    pipeline: Optional[QueryPipeline] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Build the API.  With no pipeline given, one is assembled from settings
    (or config/config.yaml) when the app starts and its store is closed
    on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store = None
        if pipeline is not None:
            app.state.pipeline = pipeline
        else:
            from taxrag.providers import build_query_pipeline, make_store
            from taxrag.utils.logger import setup_logger

            load_dotenv()
            cfg = settings or load_settings()
            setup_logger(log_level=cfg.logging.level, log_file=cfg.logging.file)
            logger.info("[Server] Loading query pipeline...")
            store = make_store(cfg)
            app.state.pipeline = build_query_pipeline(cfg, store)
            logger.info(
                f"[Server] Pipeline ready | store={store.name} | "
                f"{store.count():,} chunks | model={app.state.pipeline.generator.model}"
            )
        yield
        app.state.pipeline = None
        if store is not None:
            store.close()
        logger.info("[Server] Pipeline unloaded.")

    app = FastAPI(
        title=API_BANNER,
        description="Question answering over Nigerian tax laws and reforms",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError):
        # unparseable JSON or a non-string message; the validator detail stays in the logs
        logger.warning(f"[API] Rejected request to {request.url.path} | {exc.errors()}")
        return JSONResponse(status_code=400, content={"error": MISSING_QUESTION_ERROR})

    # -----------------------------------------------------------------------
    # Routes
    # -----------------------------------------------------------------------

    @app.get("/")
    async def root():
        return {"message": API_BANNER}

    @app.get("/health", response_class=PlainTextResponse)
    async def health():
        return "OK"

    @app.post("/chat")
    async def chat(request: Request, body: Optional[ChatRequest] = None):
        """
        Answer one question.

        The blocking pipeline runs in a thread-pool executor so slow
        embedding and generation calls do not stall the event loop.
        """
        active: Optional[QueryPipeline] = request.app.state.pipeline
        message = body.message if body is not None else None
        logger.info(f"[API] Chat | message={truncate_text(message or '', 80)!r}")

        loop = asyncio.get_running_loop()
        try:
            status, payload = await loop.run_in_executor(
                None, partial(active.respond, message)
            )
        except Exception as exc:
            logger.exception(f"[API] Unhandled error: {exc}")
            status, payload = 500, {"error": GENERIC_QUERY_ERROR}
        return JSONResponse(status_code=status, content=payload)

    return app


app = create_app()
