# vision_avatar/apps/debug_ui.py
"""
FastAPI-based debug server for Vision Avatar
Exposes the live session identity, stored profiles and controller events
"""

from typing import Any, Dict, List, Optional
import logging

from fastapi import FastAPI, Request, Response, WebSocket, WebSocketDisconnect
from pydantic import BaseModel
import uvicorn

from ..processors.event_emitter import EventEmitter, WILDCARD
from ..session.controller import SessionController

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages WebSocket connections for real-time updates"""

    def __init__(self):
        self.active_connections: List[WebSocket] = []

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.append(websocket)

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)

    async def broadcast(self, message: dict):
        """Send message to all connected clients"""
        for connection in list(self.active_connections):
            try:
                await connection.send_json(message)
            except (WebSocketDisconnect, RuntimeError) as e:
                # Connection went away between accept and send
                logger.debug(f"Dropping websocket: {e}")
                self.disconnect(connection)


class UtteranceRequest(BaseModel):
    """A user utterance to run through the voice command path"""
    text: str


def create_app(
    controller: SessionController,
    event_emitter: EventEmitter,
    demo_mode: bool = True
) -> FastAPI:
    """Build the debug app around a running controller"""
    app = FastAPI(title="Vision Avatar Debug UI")
    manager = ConnectionManager()

    async def _broadcast(event: dict):
        await manager.broadcast({"type": "event", "event": event})

    event_emitter.subscribe(WILDCARD, _broadcast)

    app.state.controller = controller
    app.state.event_emitter = event_emitter
    app.state.connections = manager

    @app.get("/health")
    async def health(response: Response) -> Dict[str, Any]:
        response.headers["X-Demo-Mode"] = "true" if demo_mode else "false"
        return {"status": "ok", "demo_mode": demo_mode}

    @app.get("/api/state")
    async def state() -> Dict[str, Any]:
        return {
            "identity": controller.snapshot().to_dict(),
            "collection_id": controller.browser.stored_collection_id,
            "monitoring": controller.monitoring,
            "greeted": controller.greeted,
            "speaking": controller.speaking,
        }

    @app.get("/api/profiles")
    async def profiles() -> List[Dict[str, Any]]:
        return [profile.to_dict() for profile in controller.profiles.list_all()]

    @app.get("/api/prompt")
    async def prompt() -> Dict[str, str]:
        return {"prompt": controller.vision_prompt()}

    @app.get("/api/events")
    async def events(event_type: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
        return event_emitter.get_event_history(event_type=event_type, limit=limit)

    @app.post("/api/utterance")
    async def utterance(request: UtteranceRequest) -> Dict[str, Any]:
        command = await controller.handle_utterance(request.text)
        return {"intent": command.intent.value, "name": command.name}

    @app.post("/api/erase")
    async def erase() -> Dict[str, Any]:
        await controller.erase_me()
        return {"identity": controller.snapshot().to_dict()}

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        await manager.connect(websocket)
        try:
            await websocket.send_json({"type": "state", "identity": controller.snapshot().to_dict()})
            while True:
                # Clients only listen; reading keeps the disconnect detectable
                await websocket.receive_text()
        except WebSocketDisconnect:
            manager.disconnect(websocket)

    return app


class DebugUIServer:
    """Runs the debug app with uvicorn next to the monitor"""

    def __init__(self, app: FastAPI, host: str = "127.0.0.1", port: int = 8080):
        self.app = app
        self.host = host
        self.port = port

    async def start(self):
        """Start the debug UI server"""
        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            log_level="info"
        )
        server = uvicorn.Server(config)
        await server.serve()
