"""
Formateur Server

FastAPI server exposing the answering pipeline to the training front end.

Endpoints:
- GET /health: Health check
- POST /api/ask: Answer a question from the training corpus

The pipeline is built once at startup from the app config and closed on
shutdown. Pipeline degradations (refusal, technical difficulty) are normal
200 responses.
"""

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..common.config import FormateurConfig, load_config
from ..common.errors import RequestValidationError
from ..answering.pipeline import Pipeline, build_pipeline

logger = logging.getLogger("formateur.server.app")

INTERNAL_ERROR_MESSAGE = (
    "An unexpected error occurred while answering your question. Please try again later."
)

# Global state
pipeline: Optional[Pipeline] = None

router = APIRouter()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the pipeline on startup, close it on shutdown"""
    global pipeline

    logger.info("Starting up...")
    pipeline = build_pipeline(app.state.config)
    logger.info("Ready (mode: %s)", pipeline.mode.value)

    yield

    logger.info("Shutting down...")
    if pipeline is not None:
        await pipeline.close()
        pipeline = None


def create_app(config: Optional[FormateurConfig] = None) -> FastAPI:
    """
    Build the FastAPI application.

    The same config drives the CORS origins and the pipeline built at
    startup. It is loaded here when not given, never at import time.
    """
    if config is None:
        config = load_config()

    app = FastAPI(
        title="Formateur",
        description="Grounded question answering over the training corpus",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


# =============================================================================
# Request/Response Models
# =============================================================================

class HistoryTurn(BaseModel):
    """Prior conversation turn"""
    role: str  # "user" or "assistant"
    content: str


class AskRequest(BaseModel):
    """Question request"""
    question: Optional[str] = None
    history: List[HistoryTurn] = []


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/health")
async def health():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "formateur",
        "initialized": pipeline is not None,
        "mode": pipeline.mode.value if pipeline else None,
    }


@router.post("/api/ask")
async def ask(request: AskRequest):
    """Answer a question; returns {answer, sources, confidence}"""
    if not request.question or not request.question.strip():
        raise HTTPException(status_code=400, detail="Question is required")
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Pipeline not initialized")

    history = [{"role": turn.role, "content": turn.content} for turn in request.history]

    try:
        result = await pipeline.ask(request.question, history)
    except RequestValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception("Unexpected error while answering")
        return JSONResponse(status_code=500, content={"detail": INTERNAL_ERROR_MESSAGE})

    public = result.to_public_dict()
    return {
        "answer": public["text"],
        "sources": public["sources"],
        "confidence": public["confidence"],
    }


# =============================================================================
# CLI Entry Point
# =============================================================================

def run_server():
    """Run the Formateur server"""
    import uvicorn

    config = load_config()
    logging.basicConfig(
        level=getattr(logging, config.server.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    logger.info("Starting server on port %d", config.server.port)
    uvicorn.run(
        create_app(config),
        host=config.server.host,
        port=config.server.port,
        reload=False,
    )


if __name__ == "__main__":
    run_server()
