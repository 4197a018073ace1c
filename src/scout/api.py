"""
FastAPI shell for the Scout pipeline.
Forwards requests to ScoutPipeline; holds no pipeline logic of its own.
"""
import json
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator, List

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from .models import ChatMessage, Query
from .pipeline import ScoutPipeline

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class ProcessRequest(BaseModel):
    message: str = ""
    history: List[ChatMessage] = Field(default_factory=list)


def get_pipeline() -> ScoutPipeline:
    return ScoutPipeline()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("🚀 Starting Scout API...")
    yield
    logger.info("Shutting down Scout API...")


app = FastAPI(
    title="Scout API",
    description="Natural-language queries about tokens, contracts and wallets",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _require_message(request: ProcessRequest) -> Query:
    if not request.message.strip():
        raise HTTPException(status_code=400, detail="Message is required")
    return Query(text=request.message, history=request.history)


@app.get("/health")
async def health():
    return {"status": "OK", "message": "Scout backend is running"}


@app.post("/api/process")
async def process(request: ProcessRequest, pipeline: ScoutPipeline = Depends(get_pipeline)):
    query = _require_message(request)
    try:
        result = await pipeline.run(query)
    except Exception as e:
        logger.error(f"Error processing request: {e}")
        raise HTTPException(status_code=500, detail=f"Internal server error: {e}")

    return {
        "success": True,
        "result": result.output,
        "metadata": {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "processedBy": "ScoutPipeline",
        },
    }


async def stream_events(pipeline: ScoutPipeline, query: Query) -> AsyncGenerator[str, None]:
    """Server-sent events: one chunk per pipeline state, then end or error."""
    try:
        async for event in pipeline.stream(query):
            yield "data: " + json.dumps({
                "type": "chunk",
                "state": event.state.value,
                "data": event.context.model_dump(mode="json"),
            }) + "\n\n"
        yield "data: " + json.dumps({"type": "end"}) + "\n\n"
    except Exception as e:
        logger.error(f"Streaming error: {e}")
        yield "data: " + json.dumps({"type": "error", "error": str(e)}) + "\n\n"


@app.post("/api/stream")
async def stream(request: ProcessRequest, pipeline: ScoutPipeline = Depends(get_pipeline)):
    query = _require_message(request)
    return StreamingResponse(
        stream_events(pipeline, query),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


def main():
    import uvicorn

    uvicorn.run("scout.api:app", host="0.0.0.0", port=int(os.getenv("PORT", "3001")))


if __name__ == "__main__":
    main()
