"""FastAPI application receiving inbound chat webhooks."""

from __future__ import annotations

import asyncio
import functools
import json
import logging
from typing import Any

from fastapi import FastAPI, Request, status as http_status
from fastapi.responses import JSONResponse, PlainTextResponse

from inbox_relay.conversation import webhook_sender
from inbox_relay.core import AppSettings, ServiceContainer, load_app_settings
from inbox_relay.notifications import POLL_EMAILS_TASK, PeriodicJob
from inbox_relay.wiring import (
    CATEGORIZER,
    DIGEST,
    ENGINE,
    NOTIFICATION_QUEUE,
    POLLER,
    build_container,
)

LOGGER = logging.getLogger(__name__)

EVENT_RECEIVED = "EVENT_RECEIVED"
DIGEST_CHECK_JOB = "digest-check"


def create_app(
    settings: AppSettings | None = None,
    container: ServiceContainer | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    app_settings = settings or load_app_settings()
    services = container or build_container(app_settings)
    app = FastAPI(title="Inbox Relay")
    app.state.container = services

    jobs: list[PeriodicJob] = []
    pending: set[asyncio.Task[Any]] = set()
    # Last queued task per sender; each new task waits for it.
    tails: dict[str, asyncio.Task[Any]] = {}

    @app.on_event("startup")
    async def startup_event() -> None:
        await asyncio.to_thread(services.resolve(CATEGORIZER).initialize_categories)
        services.resolve(NOTIFICATION_QUEUE).start()
        if app_settings.sync.poll_enabled:
            jobs.append(
                PeriodicJob(
                    POLL_EMAILS_TASK,
                    app_settings.sync.poll_interval_seconds,
                    services.resolve(POLLER).poll_cycle,
                )
            )
        if app_settings.digest.enabled:
            jobs.append(
                PeriodicJob(
                    DIGEST_CHECK_JOB,
                    app_settings.digest.interval_seconds,
                    services.resolve(DIGEST).batch_cycle,
                )
            )
        for job in jobs:
            job.start()
        LOGGER.info("Inbox Relay started with %s timer loop(s)", len(jobs))

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        for job in jobs:
            await job.stop()
        jobs.clear()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        await asyncio.to_thread(services.resolve(NOTIFICATION_QUEUE).stop)
        services.close()
        LOGGER.info("Inbox Relay stopped")

    @app.get("/health")
    async def health() -> JSONResponse:
        return JSONResponse({"status": "ok", "timers": [job.name for job in jobs]})

    @app.get("/webhook")
    async def verify_webhook(request: Request) -> PlainTextResponse:
        params = request.query_params
        mode = params.get("hub.mode")
        token = params.get("hub.verify_token")
        challenge = params.get("hub.challenge") or ""
        expected = app_settings.chat.verify_token
        if mode == "subscribe" and expected and token == expected:
            LOGGER.info("Webhook verified")
            return PlainTextResponse(challenge)
        return PlainTextResponse("Forbidden", status_code=http_status.HTTP_403_FORBIDDEN)

    @app.post("/webhook")
    async def receive_webhook(request: Request) -> PlainTextResponse:
        payload = await _read_payload(request)
        LOGGER.debug("Received webhook: %s", payload)
        engine = services.resolve(ENGINE)
        sender = webhook_sender(payload)
        previous = tails.get(sender) if sender else None
        task = asyncio.create_task(_process(engine, payload, previous))
        pending.add(task)
        task.add_done_callback(pending.discard)
        if sender:
            tails[sender] = task
            task.add_done_callback(functools.partial(_release_tail, tails, sender))
        return PlainTextResponse(EVENT_RECEIVED)

    return app


async def _process(
    engine: Any,
    payload: dict[str, Any],
    previous: asyncio.Task[Any] | None = None,
) -> None:
    """Hand ``payload`` to the engine once the sender's previous message is done."""
    if previous is not None:
        await asyncio.wait({previous})
    try:
        await asyncio.to_thread(engine.handle_webhook, payload)
    except Exception as exc:  # pylint: disable=broad-except
        LOGGER.error("Failed to process webhook: %s", exc, exc_info=True)


def _release_tail(
    tails: dict[str, asyncio.Task[Any]], sender: str, task: asyncio.Task[Any]
) -> None:
    if tails.get(sender) is task:
        del tails[sender]


async def _read_payload(request: Request) -> dict[str, Any]:
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except json.JSONDecodeError:
            LOGGER.warning("Webhook body was not valid JSON")
            return {}
        return body if isinstance(body, dict) else {}
    form = await request.form()
    return {key: value for key, value in form.items() if isinstance(value, str)}


__all__ = ["EVENT_RECEIVED", "create_app"]
