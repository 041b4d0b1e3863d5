"""
Runtime configuration for a monitoring session.

The defaults reproduce a 5-second analysis window at 60 samples/s and a
30 × 30 sampling resolution, which is plenty for a lens fully covered by a
fingertip.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass
class MonitorConfig:
    """
    Parameters
    ----------
    capacity:
        Sample buffer capacity (number of brightness samples kept).
    warmup_seconds:
        Pause between device setup and the first processed frame, so
        auto-exposure and the torch can settle.
    sample_size:
        (width, height) the frame is downsampled to before averaging.
    resolution:
        (width, height) requested from the capture device.
    fps:
        Frame rate requested from the capture device.
    camera_index:
        OpenCV VideoCapture index.
    graph_size:
        (width, height) of the waveform drawing surface.
    graph_color:
        Waveform stroke colour as ``#rrggbb``.
    graph_width:
        Stroke width in pixels; also the baseline offset of the waveform.
    max_missing_frames:
        Consecutive missing frames tolerated before the session gives up.
    """

    capacity: int = 60 * 5
    warmup_seconds: float = 1.5
    sample_size: Tuple[int, int] = (30, 30)
    resolution: Tuple[int, int] = (640, 480)
    fps: int = 60
    camera_index: int = 0
    graph_size: Tuple[int, int] = (640, 240)
    graph_color: str = "#2866eb"
    graph_width: int = 6
    max_missing_frames: int = 10

    def validate(self) -> "MonitorConfig":
        """Raise ``ValueError`` for settings no session can run with."""
        if self.capacity < 1:
            raise ValueError(f"capacity must be positive, got {self.capacity}")
        if self.warmup_seconds < 0:
            raise ValueError(
                f"warmup_seconds must not be negative, got {self.warmup_seconds}"
            )
        for name in ("sample_size", "resolution", "graph_size"):
            w, h = getattr(self, name)
            if w < 1 or h < 1:
                raise ValueError(f"{name} must be positive, got {w}x{h}")
        if self.fps < 1:
            raise ValueError(f"fps must be positive, got {self.fps}")
        if self.graph_width < 0:
            raise ValueError(f"graph_width must not be negative, got {self.graph_width}")
        if self.graph_size[1] <= 2 * self.graph_width:
            raise ValueError(
                f"graph height {self.graph_size[1]} leaves no room for a "
                f"{self.graph_width}px stroke"
            )
        hex_to_bgr(self.graph_color)
        if self.max_missing_frames < 1:
            raise ValueError(
                f"max_missing_frames must be positive, got {self.max_missing_frames}"
            )
        return self


def parse_size(text: str) -> Tuple[int, int]:
    """Parse ``"WxH"`` into ``(w, h)``; raises ``ValueError`` on bad input."""
    w, h = (int(v) for v in text.lower().split("x"))
    return w, h


def hex_to_bgr(color: str) -> Tuple[int, int, int]:
    """Convert ``#rrggbb`` into an OpenCV BGR tuple."""
    value = color.strip().lstrip("#")
    if len(value) != 6:
        raise ValueError(f"Expected a #rrggbb colour, got {color!r}")
    try:
        r, g, b = (int(value[i:i + 2], 16) for i in (0, 2, 4))
    except ValueError:
        raise ValueError(f"Expected a #rrggbb colour, got {color!r}") from None
    return b, g, r
