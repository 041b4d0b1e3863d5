"""
Frame-to-brightness extraction.

A fingertip pressed on the lens (torch on) fills the frame with a nearly
uniform red-orange field whose intensity pulses with blood volume.  The
frame is shrunk to a tiny sampling resolution and the red and green
channels are averaged into a single scalar in [0, 1].
"""

from __future__ import annotations

from typing import Tuple

import cv2
import numpy as np


def average_brightness(frame: np.ndarray, size: Tuple[int, int] = (30, 30)) -> float:
    """
    Return the mean red + green intensity of *frame*, scaled to [0, 1].

    Parameters
    ----------
    frame:
        BGR image array (H × W × 3, uint8), or a single-channel image.
    size:
        (width, height) the frame is resampled to before averaging.
    """
    small = cv2.resize(frame, size, interpolation=cv2.INTER_AREA)
    if small.ndim == 2:
        return float(small.mean()) / 255.0
    # channels 1 and 2 = Green and Red in BGR
    return float(small[:, :, 1:3].astype(np.float64).mean()) / 255.0
