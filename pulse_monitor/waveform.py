"""
Waveform normalisation.

Maps every buffered sample onto the drawing surface:

* y is the sample value scaled to the window's [min, max] range, inset by
  the stroke width so the line never clips at the edge of the surface.
* x places the newest sample at the right edge; while the buffer is still
  filling the trace grows leftwards, once full it scrolls.

Flat windows (max == min) and zero-valued samples are drawn on the
baseline instead of being divided by a zero range.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from .sample_buffer import Sample

Point = Tuple[float, float]


@dataclass(frozen=True)
class WaveformGeometry:
    """Size of the drawing surface and the stroke drawn on it."""

    width: int = 640
    height: int = 240
    line_width: int = 6

    @property
    def baseline(self) -> float:
        return float(self.line_width)

    @property
    def drawable_height(self) -> float:
        return float(self.height - 2 * self.line_width)


def normalize_waveform(
    samples: Sequence[Sample],
    minimum: float,
    maximum: float,
    capacity: int,
    geometry: WaveformGeometry,
) -> List[Point]:
    """
    Return one ``(x, y)`` point per sample, oldest first.

    Parameters
    ----------
    samples:
        Buffer snapshot.
    minimum, maximum:
        Extrema of the snapshot values.
    capacity:
        Buffer capacity; one sample occupies ``width / capacity`` pixels.
    geometry:
        Drawing surface description.
    """
    n = len(samples)
    if n == 0:
        return []

    x_scaling = geometry.width / capacity
    x_offset = (capacity - n) * x_scaling
    xs = x_scaling * np.arange(n, dtype=np.float64) + x_offset

    values = np.fromiter((s.value for s in samples), dtype=np.float64, count=n)
    ys = np.full(n, geometry.baseline, dtype=np.float64)
    span = maximum - minimum
    if span != 0:
        live = values != 0
        ys[live] = (
            geometry.drawable_height * (values[live] - minimum) / span
            + geometry.baseline
        )

    return [(float(x), float(y)) for x, y in zip(xs, ys)]


def stroke_path(points: Sequence[Point]) -> List[Point]:
    """
    Drop points that repeat the previous point's y.

    The comparison starts from y = 0, the top edge of the surface.
    """
    path: List[Point] = []
    previous_y = 0.0
    for x, y in points:
        if y != previous_y:
            path.append((x, y))
        previous_y = y
    return path
