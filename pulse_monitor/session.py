"""
Monitoring session.

Ties a capture device to a :class:`PulseEstimator`:

    start()  → acquire device → torch on → clear buffer → warm-up delay
    process_frame()  → read frame → brightness → estimator.on_sample()
    stop()   → halt frame loop → torch off → release device → clear buffer

All state lives on the session object, so several sessions (or tests with
fake devices) can coexist.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from typing import Callable, Generator, Optional

from .brightness import average_brightness
from .config import MonitorConfig
from .errors import IlluminationUnsupported
from .pulse_estimator import PulseEstimator, PulseReading
from .waveform import WaveformGeometry

logger = logging.getLogger(__name__)


class MonitorSession:
    """
    One start/stop cycle of pulse monitoring.

    Parameters
    ----------
    device:
        Object exposing ``acquire()``, ``set_illumination(on)``,
        ``read_frame()`` and ``release()`` (see :class:`CaptureDevice`).
    config:
        Session settings; defaults to :class:`MonitorConfig`.
    clock:
        Seconds-returning monotonic clock used to timestamp samples.
    extract:
        Frame-to-brightness function, ``extract(frame, size) -> float``.
    """

    def __init__(
        self,
        device,
        config: MonitorConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        extract: Callable = average_brightness,
    ) -> None:
        self.config = (config if config is not None else MonitorConfig()).validate()
        self.device = device
        self._clock = clock
        self._extract = extract

        w, h = self.config.graph_size
        self.estimator = PulseEstimator(
            capacity=self.config.capacity,
            geometry=WaveformGeometry(w, h, self.config.graph_width),
        )

        self._running = threading.Event()
        # Set once the warm-up delay has elapsed; frames are ignored before
        self._warmed = threading.Event()
        self._stop_requested = threading.Event()
        # Held for a whole frame so stop() never releases the device mid-read
        self._frame_lock = threading.RLock()
        self._missing_streak = 0

    @property
    def running(self) -> bool:
        return self._running.is_set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """
        Acquire the device and wait out the warm-up delay.

        Raises :class:`DeviceUnavailable` if the device cannot be opened;
        the sample buffer is left untouched in that case.  Returns *False*
        when :meth:`stop` was called while the device was being opened or
        during warm-up.
        """
        if self.running:
            return True

        self._warmed.clear()
        self._stop_requested.clear()
        self.device.acquire()

        if self._stop_requested.is_set():
            logger.info("Session stopped while opening the camera.")
            self.device.release()
            return False

        try:
            self.device.set_illumination(True)
        except IlluminationUnsupported as exc:
            logger.warning("Continuing without torch: %s", exc)

        self.estimator.reset()
        self._missing_streak = 0
        self._running.set()

        logger.info("Waiting %.1f s before starting the frame loop…",
                    self.config.warmup_seconds)
        if self._stop_requested.wait(self.config.warmup_seconds):
            logger.info("Session stopped during warm-up.")
            return False
        self._warmed.set()
        logger.info("Monitoring started.")
        return True

    def stop(self) -> None:
        """
        Stop monitoring.  Does nothing more than flag the request if the
        session is not running yet (e.g. :meth:`start` is still opening
        the device).
        """
        self._stop_requested.set()
        if not self.running:
            return
        self._running.clear()
        self._warmed.clear()

        with self._frame_lock:
            try:
                self.device.set_illumination(False)
            except IlluminationUnsupported:
                pass
            self.device.release()
            self.estimator.reset()
        logger.info("Monitoring stopped.")

    def toggle(self) -> bool:
        """Start a stopped session or stop a running one; returns the new state."""
        if self.running:
            self.stop()
        else:
            self.start()
        return self.running

    def __enter__(self) -> "MonitorSession":
        self.start()
        return self

    def __exit__(self, *_) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Frame processing
    # ------------------------------------------------------------------

    def process_frame(self) -> Optional[PulseReading]:
        """
        Read one frame and feed its brightness to the estimator.

        Returns *None* during warm-up and when the frame was missing or
        unusable; a streak of ``max_missing_frames`` missing frames stops
        the session.
        """
        with self._frame_lock:
            if not self.running:
                raise RuntimeError("Session is not running.  Call start() first.")
            if not self._warmed.is_set():
                return None

            frame = self.device.read_frame()
            if frame is None:
                self._missing_streak += 1
                if self._missing_streak >= self.config.max_missing_frames:
                    logger.error(
                        "Camera returned %d consecutive empty frames – stopping.",
                        self._missing_streak,
                    )
                    self.stop()
                return None
            self._missing_streak = 0

            value = self._extract(frame, self.config.sample_size)
            if not math.isfinite(value):
                logger.warning("Skipping frame with non-finite brightness %r.", value)
                return None

            timestamp = self._clock() * 1000.0
            return self.estimator.on_sample(value, timestamp)

    def readings(self) -> Generator[PulseReading, None, None]:
        """
        Yield readings until the session is stopped.

        Usage::

            with MonitorSession(CaptureDevice()) as session:
                for reading in session.readings():
                    show(reading)
        """
        while True:
            with self._frame_lock:
                if not self.running:
                    return
                reading = self.process_frame()
            if reading is not None:
                yield reading
