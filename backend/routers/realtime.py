from typing import Optional

from fastapi import APIRouter, WebSocket

from services.realtime_service import manager

router = APIRouter(tags=["Realtime"])


@router.websocket("/ws")
async def changes(websocket: WebSocket, table: Optional[str] = None):
    await manager.stream(websocket, tables=[table] if table else None)
