"""
Display sink.

Draws the live pulse view onto an OpenCV image:
  • The waveform stroke handed over by the estimator.
  • The BPM readout (blank until the first estimate).
  • A buffer fill bar while the analysis window is filling up.
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

import cv2
import numpy as np

from .config import hex_to_bgr
from .waveform import WaveformGeometry

# ---------------------------------------------------------------------------
# Colour palette (BGR)
# ---------------------------------------------------------------------------
_WHITE  = (255, 255, 255)
_BLACK  = (0, 0, 0)
_CYAN   = (220, 200,  0)
_YELLOW = (0, 210, 210)
_DARK   = (30, 30, 30)


class Visualizer:
    """
    Renders the pulse view; one :meth:`render` call per frame.

    Parameters
    ----------
    size:
        (width, height) of the waveform drawing surface.
    graph_color:
        Waveform stroke colour as ``#rrggbb``.
    graph_width:
        Stroke width in pixels.
    """

    def __init__(
        self,
        size: Tuple[int, int] = (640, 240),
        graph_color: str = "#2866eb",
        graph_width: int = 6,
    ) -> None:
        self.w, self.h = size
        self.graph_color = hex_to_bgr(graph_color)
        self.graph_width = graph_width
        self._bpm: Optional[int] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def geometry(self) -> WaveformGeometry:
        """Surface description the estimator normalises the waveform to."""
        return WaveformGeometry(self.w, self.h, self.graph_width)

    @property
    def bpm(self) -> Optional[int]:
        return self._bpm

    def resize(self, width: int, height: int) -> None:
        self.w, self.h = width, height

    def show_bpm(self, bpm: Optional[int]) -> None:
        """Set the readout; *None* blanks it."""
        self._bpm = bpm

    def render(
        self,
        points: Sequence[Tuple[float, float]],
        buffer_fill: float = 1.0,
    ) -> np.ndarray:
        """
        Clear the surface, stroke *points* and draw the readout.

        Parameters
        ----------
        points:
            Ordered (x, y) waveform points in surface coordinates.
        buffer_fill:
            How full the sample buffer is (0 – 1).  Drives the fill bar.

        Returns
        -------
        numpy.ndarray
            BGR image (height × width × 3, uint8).
        """
        canvas = np.zeros((self.h, self.w, 3), dtype=np.uint8)

        if points:
            self._draw_waveform(canvas, points)
        if buffer_fill < 1.0:
            self._draw_fill_bar(canvas, buffer_fill)
        self._draw_bpm(canvas)
        return canvas

    # ------------------------------------------------------------------
    # Private drawing helpers
    # ------------------------------------------------------------------

    def _draw_waveform(
        self,
        canvas: np.ndarray,
        points: Sequence[Tuple[float, float]],
    ) -> None:
        pts = np.rint(np.asarray(points, dtype=np.float64)).astype(np.int32)
        if len(pts) == 1:
            # A single point still shows up as a round dot
            x, y = pts[0]
            cv2.circle(canvas, (int(x), int(y)), max(1, self.graph_width // 2),
                       self.graph_color, -1, cv2.LINE_AA)
            return
        cv2.polylines(canvas, [pts[:, None, :]], False, self.graph_color,
                      max(1, self.graph_width), cv2.LINE_AA)

    def _draw_bpm(self, canvas: np.ndarray) -> None:
        if self._bpm is None:
            return
        text = f"{self._bpm} bpm"
        cv2.putText(canvas, text, (16, 40), cv2.FONT_HERSHEY_SIMPLEX, 1.2,
                    _BLACK, 5, cv2.LINE_AA)
        cv2.putText(canvas, text, (16, 40), cv2.FONT_HERSHEY_SIMPLEX, 1.2,
                    _WHITE, 2, cv2.LINE_AA)

    def _draw_fill_bar(self, canvas: np.ndarray, fill: float) -> None:
        bar_w = int((self.w - 32) * max(0.0, min(fill, 1.0)))
        y0, y1 = self.h - 12, self.h - 4
        cv2.rectangle(canvas, (16, y0), (self.w - 16, y1), _DARK, -1)
        cv2.rectangle(canvas, (16, y0), (16 + bar_w, y1), _CYAN, -1)
        cv2.putText(canvas, "Warming up...", (16, y0 - 4),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.4, _YELLOW, 1, cv2.LINE_AA)
