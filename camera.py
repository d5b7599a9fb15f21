"""Single still-frame capture from an OpenCV video device."""

import asyncio
import logging
from dataclasses import dataclass

import cv2
import numpy as np

import config

logger = logging.getLogger(__name__)


class CameraError(Exception):
    """Camera could not be opened or did not return a frame."""


@dataclass(frozen=True)
class Frame:
    image: np.ndarray  # BGR
    jpeg: bytes

    @property
    def width(self) -> int:
        return self.image.shape[1]

    @property
    def height(self) -> int:
        return self.image.shape[0]


def encode_jpeg(image: np.ndarray, quality: int | None = None) -> bytes:
    q = config.CAPTURE_JPEG_QUALITY if quality is None else quality
    ok, buffer = cv2.imencode(".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, q])
    if not ok:
        raise CameraError("JPEG encoding failed")
    return buffer.tobytes()


class Camera:
    """Owns one ``cv2.VideoCapture`` and hands out JPEG-encoded stills."""

    def __init__(self, index: int | None = None):
        self.index = config.CAMERA_INDEX if index is None else index
        self._cap: cv2.VideoCapture | None = None

    def open(self):
        logger.info("Opening camera index %s", self.index)
        cap = cv2.VideoCapture(self.index)
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, config.FRAME_WIDTH)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, config.FRAME_HEIGHT)
        if not cap.isOpened():
            raise CameraError(f"Could not open camera index {self.index}")
        self._cap = cap

    @property
    def is_open(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    def capture(self) -> Frame:
        if not self.is_open:
            self.open()
        ret, image = self._cap.read()
        if not ret or image is None:
            raise CameraError("Camera returned no frame")
        return Frame(image=image, jpeg=encode_jpeg(image))

    async def take_photo(self) -> Frame:
        """Capture without blocking the event loop."""
        return await asyncio.to_thread(self.capture)

    def release(self):
        if self._cap is not None:
            self._cap.release()
            self._cap = None
