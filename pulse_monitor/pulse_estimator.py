"""
Pulse estimator.

Algorithm
---------
1. Append the new brightness sample to a rolling buffer of the last
   ``capacity`` samples (5 s at 60 samples/s by default).
2. Recompute the window statistics from scratch: mean, min, max, range.
3. Flag every sample at which the signal falls through the mean
   (previous sample above the mean, current sample below it).  The
   systolic peak makes the signal rise and then fall, so one falling
   crossing is counted per heartbeat.
4. BPM = 60000 / mean interval between the first and the last crossing
   in the window (timestamps in milliseconds).
5. Normalise the window to waveform points for display.

No filtering is applied; the mean over a few seconds is the only
detrending the signal gets.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .sample_buffer import Sample, SampleBuffer
from .waveform import Point, WaveformGeometry, normalize_waveform, stroke_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Statistics:
    """Window statistics, recomputed for every new sample."""

    average: float
    min: float
    max: float
    range: float
    crossings: List[Sample] = field(default_factory=list)


@dataclass(frozen=True)
class PulseReading:
    """
    Output of one processed sample.

    ``bpm`` is *None* while fewer than two crossings are in the window.
    ``waveform`` is the stroke path to hand to the display sink.
    """

    bpm: Optional[int]
    waveform: List[Point]
    stats: Statistics


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def find_average_crossings(samples: Sequence[Sample], average: float) -> List[Sample]:
    """
    Return the samples where the signal falls through *average*.

    The first sample seeds the comparison and is never flagged itself.
    """
    if len(samples) < 2:
        return []
    values = np.fromiter((s.value for s in samples), dtype=np.float64, count=len(samples))
    falling = (values[1:] < average) & (values[:-1] > average)
    return [samples[i + 1] for i in np.flatnonzero(falling)]


def analyze_samples(samples: Sequence[Sample]) -> Optional[Statistics]:
    """Compute :class:`Statistics` over *samples*; *None* when empty."""
    if not samples:
        return None
    values = np.fromiter((s.value for s in samples), dtype=np.float64, count=len(samples))
    average = float(values.mean())
    lo = float(values.min())
    hi = float(values.max())
    return Statistics(
        average=average,
        min=lo,
        max=hi,
        range=hi - lo,
        crossings=find_average_crossings(samples, average),
    )


def calculate_bpm(crossings: Sequence[Sample]) -> Optional[float]:
    """
    Mean-interval BPM over all *crossings*, or *None* with fewer than two.

    Crossings sharing one timestamp give no usable interval and also
    return *None*.
    """
    if len(crossings) < 2:
        return None
    elapsed = crossings[-1].timestamp - crossings[0].timestamp
    if elapsed <= 0:
        return None
    average_interval = elapsed / (len(crossings) - 1)
    return 60000.0 / average_interval


def round_bpm(bpm: float) -> int:
    """Round half up, as the on-screen readout does."""
    return int(math.floor(bpm + 0.5))


# ---------------------------------------------------------------------------
# Estimator
# ---------------------------------------------------------------------------

class PulseEstimator:
    """
    Owns the sample buffer and turns each new sample into a reading.

    Parameters
    ----------
    capacity:
        Number of samples kept in the analysis window.
    geometry:
        Drawing surface the waveform is normalised to.  May be replaced
        between samples (e.g. after a window resize).
    """

    def __init__(
        self,
        capacity: int = 300,
        geometry: WaveformGeometry | None = None,
    ) -> None:
        self._buffer = SampleBuffer(capacity)
        self.geometry = geometry if geometry is not None else WaveformGeometry()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def on_sample(self, value: float, timestamp: float) -> PulseReading:
        """Push one brightness sample and return the resulting reading."""
        self._buffer.push(value, timestamp)
        samples = self._buffer.snapshot()
        stats = analyze_samples(samples)

        bpm = calculate_bpm(stats.crossings)
        rounded = round_bpm(bpm) if bpm is not None else None

        points = normalize_waveform(
            samples, stats.min, stats.max, self._buffer.capacity, self.geometry
        )
        logger.debug(
            "n=%d avg=%.4f range=%.4f crossings=%d bpm=%s",
            len(samples), stats.average, stats.range, len(stats.crossings), rounded,
        )
        return PulseReading(bpm=rounded, waveform=stroke_path(points), stats=stats)

    def waveform_points(self) -> List[Point]:
        """One point per buffered sample (no stroke deduplication)."""
        samples = self._buffer.snapshot()
        stats = analyze_samples(samples)
        if stats is None:
            return []
        return normalize_waveform(
            samples, stats.min, stats.max, self._buffer.capacity, self.geometry
        )

    def snapshot(self) -> Tuple[Sample, ...]:
        return self._buffer.snapshot()

    def reset(self) -> None:
        """Clear the sample buffer."""
        self._buffer.clear()

    @property
    def capacity(self) -> int:
        return self._buffer.capacity

    @property
    def buffer_fill_ratio(self) -> float:
        """How full the rolling buffer is (0 – 1)."""
        return self._buffer.fill_ratio
