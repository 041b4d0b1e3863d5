"""
Capture device.

Wraps picamera2 when it is installed (Raspberry Pi OS) and OpenCV
VideoCapture otherwise, behind the acquire / set_illumination / release
lifecycle the monitoring session drives.
"""

from __future__ import annotations

import logging
from typing import Tuple

import cv2
import numpy as np

from .errors import DeviceUnavailable, IlluminationUnsupported

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# picamera2 is only available on Raspberry Pi OS
# ---------------------------------------------------------------------------
try:
    from picamera2 import Picamera2
    _PICAMERA2_AVAILABLE = True
except ImportError:
    _PICAMERA2_AVAILABLE = False
    logger.debug("picamera2 not found – using OpenCV VideoCapture.")


class CaptureDevice:
    """
    Camera handle with an explicit lifecycle.

    Parameters
    ----------
    resolution:
        (width, height) requested from the device.  Only the brightness
        average is used, so a low resolution is fine.
    fps:
        Target frame rate.
    camera_index:
        OpenCV camera index.
    use_picamera2:
        Force the backend; defaults to picamera2 when it can be imported.
    """

    def __init__(
        self,
        resolution: Tuple[int, int] = (640, 480),
        fps: int = 60,
        camera_index: int = 0,
        use_picamera2: bool | None = None,
    ) -> None:
        self.resolution = resolution
        self.fps = fps
        self.camera_index = camera_index
        self._use_picamera2 = (
            _PICAMERA2_AVAILABLE if use_picamera2 is None else use_picamera2
        )
        self._cam: "Picamera2 | cv2.VideoCapture | None" = None

    @property
    def is_open(self) -> bool:
        return self._cam is not None

    @property
    def backend(self) -> str:
        return "picamera2" if self._use_picamera2 else "opencv"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def acquire(self) -> None:
        """Open the device.  Raises :class:`DeviceUnavailable` on failure."""
        if self._cam is not None:
            return
        if self._use_picamera2:
            self._cam = self._open_picamera2()
        else:
            self._cam = self._open_opencv()
        logger.info(
            "Camera opened – backend=%s resolution=%s fps=%d",
            self.backend, self.resolution, self.fps,
        )

    def set_illumination(self, on: bool) -> None:
        """
        Switch the torch on or off.

        Neither backend exposes a torch control, so this always raises
        :class:`IlluminationUnsupported`; callers treat that as non-fatal.
        """
        raise IlluminationUnsupported(
            f"Torch control is not supported by the {self.backend} backend."
        )

    def release(self) -> None:
        """Stop and release the device.  Safe to call when already released."""
        if self._cam is None:
            return
        if self._use_picamera2:
            self._cam.stop()
            self._cam.close()
        else:
            self._cam.release()
        self._cam = None
        logger.info("Camera closed.")

    def __enter__(self) -> "CaptureDevice":
        self.acquire()
        return self

    def __exit__(self, *_) -> None:
        self.release()

    # ------------------------------------------------------------------
    # Frame acquisition
    # ------------------------------------------------------------------

    def read_frame(self) -> np.ndarray | None:
        """
        Capture a single BGR frame (H × W × 3, uint8), or *None* on failure.
        """
        if self._cam is None:
            raise RuntimeError("Camera is not open.  Call acquire() first.")
        if self._use_picamera2:
            return self._read_picamera2()
        return self._read_opencv()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _open_picamera2(self) -> "Picamera2":
        try:
            cam = Picamera2()
        except (RuntimeError, IndexError) as exc:
            raise DeviceUnavailable(f"No Pi camera available: {exc}") from exc
        try:
            config = cam.create_video_configuration(
                main={"size": tuple(self.resolution), "format": "RGB888"},
                buffer_count=4,
            )
            cam.configure(config)
            frame_duration = int(1_000_000 / self.fps)   # microseconds
            try:
                cam.set_controls({"FrameDurationLimits": (frame_duration, frame_duration)})
            except Exception as exc:                         # noqa: BLE001
                logger.warning("Could not set FrameDurationLimits: %s", exc)
            cam.start()
        except Exception as exc:                             # noqa: BLE001
            cam.close()
            raise DeviceUnavailable(f"Cannot start Pi camera: {exc}") from exc
        return cam

    def _read_picamera2(self) -> np.ndarray | None:
        frame = self._cam.capture_array("main")
        if frame is None:
            logger.warning("capture_array returned None.")
            return None
        if frame.ndim == 3 and frame.shape[2] == 4:
            frame = frame[:, :, :3]
        return cv2.cvtColor(frame, cv2.COLOR_RGB2BGR)

    def _open_opencv(self) -> "cv2.VideoCapture":
        cap = cv2.VideoCapture(self.camera_index)
        if not cap.isOpened():
            cap.release()
            raise DeviceUnavailable(
                f"Cannot open video capture device index={self.camera_index}"
            )
        w, h = self.resolution
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, w)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, h)
        cap.set(cv2.CAP_PROP_FPS, self.fps)
        return cap

    def _read_opencv(self) -> np.ndarray | None:
        ok, frame = self._cam.read()
        if not ok:
            logger.warning("VideoCapture.read() returned False.")
            return None
        return frame
