"""FastAPI entrypoint for inquiry/run/metrics endpoints."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from agent_flag.bootstrap import Runtime, build_runtime, start_runtime
from agent_flag.config import get_settings
from agent_flag.obs.logging import get_logger
from agent_flag.obs.tracing import RunStore, Timer
from agent_flag.types import Failure, Inquiry, InquiryType

logger = get_logger("agent_flag.api")


class InquiryRequest(BaseModel):
    id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    type: InquiryType
    message: str = Field(min_length=1)
    timestamp: datetime | None = None

    def to_inquiry(self) -> Inquiry:
        return Inquiry(
            id=self.id,
            user_id=self.user_id,
            type=self.type,
            message=self.message,
            timestamp=self.timestamp,
        )


def create_app(runtime: Runtime | None = None, *, run_store: RunStore | None = None) -> FastAPI:
    """Build the API app.

    The flag service is connected when the app starts and closed when it
    shuts down; a connection failure aborts startup. Without an explicit
    runtime one is built from environment settings at startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        active = runtime or build_runtime(get_settings())
        await start_runtime(active)
        app.state.runtime = active
        logger.info("Flag service connected; accepting inquiries")
        try:
            yield
        finally:
            await active.flag_service.close()

    app = FastAPI(title="Agent Flag Workflow", version="0.1.0", lifespan=lifespan)
    app.state.run_store = run_store or RunStore()

    @app.get("/health")
    def health(request: Request) -> dict[str, Any]:
        active: Runtime = request.app.state.runtime
        return {
            "status": "ok",
            "flags_ready": active.flag_service.ready,
            "llm_configured": active.generator is not None,
            "stage_mode": "llm" if active.generator is not None else "deterministic",
        }

    @app.post("/inquiries")
    async def process_inquiry(payload: InquiryRequest, request: Request) -> dict[str, Any]:
        active: Runtime = request.app.state.runtime
        store: RunStore = request.app.state.run_store
        inquiry = payload.to_inquiry()

        with Timer() as timer:
            outcome = await active.executor.execute(inquiry)
        store.create_record(inquiry, outcome, latency_ms=timer.elapsed_ms)
        if isinstance(outcome, Failure):
            raise HTTPException(
                status_code=500,
                detail={"inquiry_id": inquiry.id, "error": asdict(outcome.error)},
            )
        return asdict(outcome.value)

    @app.get("/runs")
    def runs(request: Request, limit: int = 20) -> dict[str, Any]:
        store: RunStore = request.app.state.run_store
        return {"items": [asdict(record) for record in store.list_recent(limit=limit)]}

    @app.get("/runs/{inquiry_id}")
    def run_detail(inquiry_id: str, request: Request) -> dict[str, Any]:
        store: RunStore = request.app.state.run_store
        try:
            record = store.get(inquiry_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return asdict(record)

    @app.get("/metrics")
    def metrics(request: Request) -> dict[str, Any]:
        store: RunStore = request.app.state.run_store
        return store.summary()

    return app
