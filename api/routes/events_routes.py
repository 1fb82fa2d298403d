# api/routes/events_routes.py
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends
from ..deps import get_automation_loop
from runner.logger import log
import asyncio

router = APIRouter()

@router.websocket("/automation/events")
async def events_websocket(websocket: WebSocket, loop = Depends(get_automation_loop)):
    """
    Streams loop notifications (actions, diagnostics, mode changes) as JSON.
    A slow client loses events rather than holding the loop back.
    """
    await websocket.accept()
    log("INFO", "events_connect", "Events WebSocket connected")

    if loop is None:
        await websocket.close(code=1011, reason="Automation loop not initialized")
        return

    queue = loop.subscribe()
    try:
        await websocket.send_json({"type": "started", "status": loop.status().model_dump(mode="json")})

        while True:
            send_task = asyncio.create_task(queue.get())
            recv_task = asyncio.create_task(websocket.receive_text())

            done, pending = await asyncio.wait(
                [send_task, recv_task],
                return_when=asyncio.FIRST_COMPLETED
            )

            for task in pending:
                task.cancel()

            stop = False
            for task in done:
                if task == send_task:
                    event = task.result()
                    await websocket.send_json(event.model_dump(mode="json"))
                elif task == recv_task:
                    msg = task.result()
                    if msg == "ping":
                        await websocket.send_json({"type": "pong"})
                    elif msg == "stop":
                        stop = True
            if stop:
                await websocket.close()
                break

    except WebSocketDisconnect:
        log("INFO", "events_disconnect", "Events WebSocket disconnected")
    except Exception as e:
        log("ERROR", "events_error", "Events stream error", error=str(e))
        try:
            await websocket.close(code=1011, reason=str(e))
        except Exception:
            pass
    finally:
        loop.unsubscribe(queue)
