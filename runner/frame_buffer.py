import asyncio
import io
import itertools
import threading
import time
from typing import Optional

import numpy as np
from PIL import Image

from runner.errors import FrameDecodeError
from runner.logger import log

_sequence = itertools.count(1)

class Frame:
    """
    One captured screen sample: an immutable RGBA8 raster of shape
    (height, width, 4) plus its capture time and sequence number.
    """

    __slots__ = ("pixels", "captured_at", "sequence")

    def __init__(self, pixels: np.ndarray, captured_at: Optional[float] = None, sequence: Optional[int] = None):
        arr = np.array(pixels, dtype=np.uint8, copy=True)
        if arr.ndim == 3 and arr.shape[2] == 3:
            alpha = np.full(arr.shape[:2] + (1,), 255, dtype=np.uint8)
            arr = np.concatenate([arr, alpha], axis=2)
        if arr.ndim != 3 or arr.shape[2] != 4:
            raise FrameDecodeError(f"Expected an RGBA raster, got shape {arr.shape}")
        arr.setflags(write=False)
        self.pixels = arr
        self.captured_at = time.monotonic() if captured_at is None else captured_at
        self.sequence = next(_sequence) if sequence is None else sequence

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @classmethod
    def from_image(cls, img: Image.Image) -> "Frame":
        if img.mode != "RGBA":
            img = img.convert("RGBA")
        return cls(np.asarray(img))

    @classmethod
    def from_png_bytes(cls, data: bytes) -> "Frame":
        try:
            img = Image.open(io.BytesIO(data))
            img.load()
        except Exception as e:
            raise FrameDecodeError(f"Could not decode screen capture: {e}")
        return cls.from_image(img)

    def to_image(self) -> Image.Image:
        return Image.fromarray(np.ascontiguousarray(self.pixels))

    def to_jpeg_bytes(self, max_width: int = 720, max_height: int = 1280, quality: int = 70) -> bytes:
        """Downscaled JPEG preview for diagnostics."""
        img = self.to_image().convert("RGB")
        img = _resize_image(img, max_width, max_height)
        buffered = io.BytesIO()
        img.save(buffered, format="JPEG", quality=quality, optimize=True)
        return buffered.getvalue()

    def __repr__(self) -> str:
        return f"Frame(seq={self.sequence}, {self.width}x{self.height})"

def _resize_image(img: Image.Image, max_width: int, max_height: int) -> Image.Image:
    width, height = img.size
    if width <= max_width and height <= max_height:
        return img

    aspect_ratio = width / height
    if width > max_width:
        width = max_width
        height = int(width / aspect_ratio)
    if height > max_height:
        height = max_height
        width = int(height * aspect_ratio)

    return img.resize((max(1, width), max(1, height)), Image.Resampling.LANCZOS)

class FrameBuffer:
    """
    Single-slot holder for the most recent frame.

    Writes overwrite the slot and readers get whatever is there: a reader may
    see the same frame twice or miss one. There is no queue and no backpressure.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._frame: Optional[Frame] = None

    def publish(self, frame: Frame) -> bool:
        with self._lock:
            if self._frame is not None and frame.sequence < self._frame.sequence:
                return False
            self._frame = frame
            return True

    def latest(self) -> Optional[Frame]:
        with self._lock:
            return self._frame

    def clear(self) -> None:
        with self._lock:
            self._frame = None

class FrameCaptureService:
    """Polls the device for screen captures on a fixed cadence and publishes them."""

    def __init__(self, backend, buffer: FrameBuffer, interval_sec: float = 0.5):
        self.backend = backend
        self.buffer = buffer
        self.interval_sec = interval_sec
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        log("INFO", "frame_capture_started", "Frame capture started", interval_sec=self.interval_sec)

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self.buffer.clear()
        log("INFO", "frame_capture_stopped", "Frame capture stopped")

    async def capture_once(self) -> Optional[Frame]:
        frame = await self.backend.capture_frame()
        if frame is not None:
            self.buffer.publish(frame)
        return frame

    async def _run(self):
        while True:
            try:
                if self.backend.is_connected():
                    await self.capture_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log("WARN", "frame_capture_failed", "Screen capture failed", error=str(e))
            await asyncio.sleep(self.interval_sec)
