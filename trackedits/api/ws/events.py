from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from typing import Dict, List
import json
import logging

from trackedits.core.events import EngineEvent

logger = logging.getLogger(__name__)

router = APIRouter()


class ConnectionManager:
    """Пересылка событий движка подписчикам документа по WebSocket"""

    def __init__(self):
        # Хранилище активных соединений: {document_id: [websocket]}
        self.active_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, document_id: str):
        """Подключение клиента к каналу событий документа"""
        await websocket.accept()
        self.active_connections.setdefault(document_id, []).append(websocket)
        logger.info(f"WebSocket subscribed to events of document {document_id}")

        await websocket.send_text(json.dumps({
            "type": "connected",
            "data": {
                "document_id": document_id,
                "subscribers": self.subscriber_count(document_id)
            }
        }))

    def disconnect(self, document_id: str, websocket: WebSocket):
        """Отключение клиента от документа"""
        connections = self.active_connections.get(document_id, [])
        if websocket in connections:
            connections.remove(websocket)
        if not connections:
            self.active_connections.pop(document_id, None)
        logger.info(f"WebSocket unsubscribed from document {document_id}")

    def subscriber_count(self, document_id: str) -> int:
        return len(self.active_connections.get(document_id, []))

    async def broadcast_to_document(self, document_id: str, message: dict):
        """Рассылка сообщения всем подписчикам документа"""
        if document_id not in self.active_connections:
            return

        message_json = json.dumps(message, default=str)
        disconnected = []
        for websocket in list(self.active_connections[document_id]):
            try:
                await websocket.send_text(message_json)
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.warning(f"Dropping subscriber of document {document_id}: {e}")
                disconnected.append(websocket)

        for websocket in disconnected:
            self.disconnect(document_id, websocket)

    async def forward(self, event: EngineEvent):
        """Обработчик шины событий: пересылка события его документу"""
        if event.document_id is None:
            return
        await self.broadcast_to_document(event.document_id, event.to_dict())


@router.websocket("/documents/{document_id}/events")
async def events_endpoint(websocket: WebSocket, document_id: str):
    """WebSocket эндпоинт событий отслеживания правок"""
    manager: ConnectionManager = websocket.app.state.ws_manager
    await manager.connect(websocket, document_id)

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_text(json.dumps({"type": "error", "data": {"detail": "Invalid JSON"}}))
                continue

            if message.get("type") == "ping":
                # Ответ на ping для поддержания соединения
                await websocket.send_text(json.dumps({"type": "pong"}))

    except WebSocketDisconnect:
        manager.disconnect(document_id, websocket)
