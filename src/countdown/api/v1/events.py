import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from countdown.services.orchestrator import PollOrchestrator, get_orchestrator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events"])


@router.websocket("/ws/events")
async def stream_events(
    websocket: WebSocket,
    orchestrator: PollOrchestrator = Depends(get_orchestrator),
) -> None:
    """Forward orchestrator notifications to the client as JSON messages."""
    queue = orchestrator.notifier.subscribe()
    try:
        await websocket.accept()
        while True:
            event = await queue.get()
            await websocket.send_json(event)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WebSocket error")
    finally:
        orchestrator.notifier.unsubscribe(queue)
