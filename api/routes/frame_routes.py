# api/routes/frame_routes.py
from fastapi import APIRouter, Depends, HTTPException, Response
from ..deps import get_frame_buffer

router = APIRouter()

@router.get("/automation/frame")
def get_latest_frame(max_width: int = 720, max_height: int = 1280, buffer = Depends(get_frame_buffer)):
    if buffer is None:
        raise HTTPException(status_code=503, detail="frame buffer not initialized")
    frame = buffer.latest()
    if frame is None:
        raise HTTPException(status_code=404, detail="no frame captured yet")
    data = frame.to_jpeg_bytes(max_width=max_width, max_height=max_height)
    return Response(
        content=data,
        media_type="image/jpeg",
        headers={"X-Frame-Sequence": str(frame.sequence), "X-Frame-Captured-At": str(frame.captured_at)},
    )
