"""
WebSocket streaming for benchmark result notifications.
"""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Optional

from fastapi import WebSocket

from loadbench.core.observer_hub import ObserverHub, hub

logger = logging.getLogger(__name__)


async def _drain_client(websocket: WebSocket) -> None:
    # Observers only listen; inbound frames are read to notice the disconnect.
    while True:
        await websocket.receive_text()


async def stream_results(
    websocket: WebSocket, observer_hub: Optional[ObserverHub] = None
) -> None:
    """
    Forward every notification broadcast while this socket stays connected.

    Returns when the client goes away; WebSocketDisconnect propagates to the
    caller.
    """
    observer_hub = observer_hub or hub
    await websocket.send_json(
        {
            "status": "connected",
            "timestamp": datetime.now(UTC).isoformat(),
        }
    )

    q = await observer_hub.subscribe()
    receiver = asyncio.create_task(_drain_client(websocket))
    try:
        while True:
            getter = asyncio.create_task(q.get())
            done, _ = await asyncio.wait(
                {getter, receiver}, return_when=asyncio.FIRST_COMPLETED
            )
            if receiver in done:
                getter.cancel()
                receiver.result()
                return
            payload = getter.result()
            await websocket.send_json(payload)
            logger.debug(
                "Sent %s for record %s", payload.get("type"), payload.get("recordId")
            )
    finally:
        receiver.cancel()
        await observer_hub.unsubscribe(q)
