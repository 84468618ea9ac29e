"""
Websocket that tells a signed-in client when its friends, requests, follows
or notifications changed. Messages carry no data; clients re-fetch.
"""
from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession
import asyncio
import logging

from services.db import get_db
from services.auth import resolve_token_user
from services.errors import SocialError
from services.realtime import ChangeBroadcaster, get_broadcaster

router = APIRouter()
logger = logging.getLogger(__name__)

@router.websocket("/ws")
async def realtime_changes(
    websocket: WebSocket,
    token: str = Query(...),
    db: AsyncSession = Depends(get_db),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
):
    client_ip = websocket.client.host if websocket.client else "unknown"
    try:
        user = await resolve_token_user(db, token, client_ip)
    except SocialError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    user_id = user.id
    await db.close()

    await websocket.accept()
    queue = broadcaster.subscribe(user_id)
    logger.info(f"Realtime subscriber connected for user {user_id}")

    # Receiving only detects the disconnect; client messages are ignored
    receiver = asyncio.create_task(websocket.receive_text())
    try:
        while True:
            sender = asyncio.create_task(queue.get())
            done, _ = await asyncio.wait({sender, receiver}, return_when=asyncio.FIRST_COMPLETED)
            if sender in done:
                await websocket.send_json(sender.result())
            else:
                sender.cancel()
            if receiver in done:
                receiver.result()
                receiver = asyncio.create_task(websocket.receive_text())
    except WebSocketDisconnect:
        logger.info(f"Realtime subscriber disconnected for user {user_id}")
    finally:
        receiver.cancel()
        broadcaster.unsubscribe(user_id, queue)
