"""
Glue between a WebSocket connection and a live session controller.

The controller pushes a snapshot after every applied load; the socket loop
turns client actions into controller calls and reports rejected actions as
``{"type": "error"}`` frames without dropping the connection.
"""

from __future__ import annotations

from typing import Any

from fastapi import WebSocket, WebSocketDisconnect, status
from pydantic import BaseModel

from handoff.core.errors import HandoffError, ValidationFailure
from handoff.core.logging_setup import logger
from handoff.sessions.base import LiveSession, SessionState
from handoff.sessions.dashboard import DashboardSessionController


async def send_error(websocket: WebSocket, exc: HandoffError) -> None:
    await websocket.send_json({"type": "error", "status": exc.status_code, "detail": exc.detail})


async def _dispatch(websocket: WebSocket, controller: LiveSession, message: Any) -> None:
    if not isinstance(message, dict):
        raise ValidationFailure("Expected a JSON object")
    action = message.get("action")
    try:
        if action == "select_project":
            await controller.select_project(message.get("project_id"))
        elif action == "send_message":
            content = message.get("content") or ""
            if isinstance(controller, DashboardSessionController):
                await controller.send_message(content, is_internal=bool(message.get("is_internal")))
            else:
                await controller.send_message(content)
        elif action == "download":
            download = await controller.file_download_url(message.get("file_id"))
            await websocket.send_json({"type": "download_url", **download.model_dump(mode="json")})
        else:
            raise ValidationFailure(f"Unknown action: {action!r}")
    except (TypeError, ValueError) as exc:
        # Malformed identifiers in the action payload.
        raise ValidationFailure("Invalid request") from exc


async def serve_live_session(websocket: WebSocket, controller: LiveSession) -> None:
    """Run ``controller`` for the lifetime of an accepted ``websocket``."""

    async def push(view: BaseModel) -> None:
        await websocket.send_json({"type": "snapshot", "view": view.model_dump(mode="json")})

    controller.on_change = push
    try:
        await controller.start()
        if controller.state != SessionState.READY:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                await send_error(websocket, ValidationFailure("Expected a JSON object"))
                continue
            try:
                await _dispatch(websocket, controller, message)
            except HandoffError as exc:
                await send_error(websocket, exc)
    except WebSocketDisconnect:
        logger.debug("%s socket disconnected", controller.kind)
    finally:
        await controller.close()
