#!/usr/bin/env python3
"""
Pulse Monitor – main entry point.

Usage
-----
    python main.py [OPTIONS]

Options
-------
    --resolution WxH     Camera resolution (default: 640x480)
    --fps INT            Target frame rate  (default: 60)
    --capacity INT       Samples kept in the analysis window (default: 300)
    --warmup FLOAT       Warm-up delay in seconds (default: 1.5)
    --camera-index INT   OpenCV camera index (default: 0)
    --graph-size WxH     Waveform window size (default: 640x240)
    --graph-color HEX    Waveform colour (default: #2866eb)
    --graph-width INT    Waveform stroke width (default: 6)
    --headless           Run without display window (log BPM to stdout)
    --debug              Log per-frame statistics

Keyboard shortcuts (when a window is open)
------------------------------------------
    SPACE    – start / stop monitoring
    r        – reset signal buffer
    q / ESC  – quit
"""

from __future__ import annotations

import argparse
import logging
import sys
import time

# Must be set before cv2 is imported so Qt5 uses X11/XWayland instead of
# looking for a Wayland plugin that is not bundled with pip-installed opencv.
import os
os.environ.setdefault("QT_QPA_PLATFORM", "xcb")

import cv2

from pulse_monitor.camera import CaptureDevice
from pulse_monitor.config import MonitorConfig, parse_size
from pulse_monitor.errors import DeviceUnavailable
from pulse_monitor.session import MonitorSession
from pulse_monitor.visualizer import Visualizer

logger = logging.getLogger("pulse_monitor")

WINDOW_NAME = "Pulse Monitor"


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    defaults = MonitorConfig()
    parser = argparse.ArgumentParser(
        description="Fingertip pulse monitor (camera PPG, mean-crossing BPM)",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--resolution", default="640x480",
                        help="Camera resolution, e.g. 640x480")
    parser.add_argument("--fps", type=int, default=defaults.fps,
                        help="Target capture frame rate")
    parser.add_argument("--capacity", type=int, default=defaults.capacity,
                        help="Samples kept in the analysis window")
    parser.add_argument("--warmup", type=float, default=defaults.warmup_seconds,
                        help="Seconds to wait after opening the camera")
    parser.add_argument("--camera-index", type=int, default=defaults.camera_index,
                        help="OpenCV VideoCapture index")
    parser.add_argument("--graph-size", default="640x240",
                        help="Waveform window size, e.g. 640x240")
    parser.add_argument("--graph-color", default=defaults.graph_color,
                        help="Waveform colour as #rrggbb")
    parser.add_argument("--graph-width", type=int, default=defaults.graph_width,
                        help="Waveform stroke width in pixels")
    parser.add_argument("--headless", action="store_true",
                        help="No display window; log BPM to stdout only")
    parser.add_argument("--debug", action="store_true",
                        help="Log per-frame statistics")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> MonitorConfig:
    return MonitorConfig(
        capacity=args.capacity,
        warmup_seconds=args.warmup,
        resolution=parse_size(args.resolution),
        fps=args.fps,
        camera_index=args.camera_index,
        graph_size=parse_size(args.graph_size),
        graph_color=args.graph_color,
        graph_width=args.graph_width,
    ).validate()


# ---------------------------------------------------------------------------
# Main loop
# ---------------------------------------------------------------------------

def _sync_window_size(vis: Visualizer, session: MonitorSession) -> None:
    """Follow user resizes of the display window."""
    _, _, w, h = cv2.getWindowImageRect(WINDOW_NAME)
    if w > 0 and h > 0 and (w, h) != (vis.w, vis.h):
        vis.resize(w, h)
        session.estimator.geometry = vis.geometry


def run(args: argparse.Namespace) -> int:
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s – %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        config = build_config(args)
    except ValueError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 1

    device = CaptureDevice(
        resolution=config.resolution,
        fps=config.fps,
        camera_index=config.camera_index,
    )
    session = MonitorSession(device, config)
    vis = Visualizer(
        size=config.graph_size,
        graph_color=config.graph_color,
        graph_width=config.graph_width,
    )

    vis.show_bpm(None)
    try:
        session.start()
    except DeviceUnavailable as exc:
        logger.error("Failed to access camera: %s", exc)
        return 1

    if not args.headless:
        cv2.namedWindow(WINDOW_NAME, cv2.WINDOW_NORMAL)
        cv2.resizeWindow(WINDOW_NAME, *config.graph_size)
        logger.info("Press SPACE to start/stop, 'q' or ESC to quit.")

    canvas = vis.render([], buffer_fill=0.0)
    frame_idx = 0
    bpm_log_interval = config.fps  # log to stdout every ~1 second

    try:
        while True:
            if session.running:
                reading = session.process_frame()
                if reading is not None:
                    if reading.bpm is not None:
                        vis.show_bpm(reading.bpm)
                    canvas = vis.render(
                        reading.waveform,
                        buffer_fill=session.estimator.buffer_fill_ratio,
                    )
                frame_idx += 1

            if args.headless:
                if not session.running:
                    break
                if frame_idx % bpm_log_interval == 0:
                    ts = time.strftime("%H:%M:%S")
                    if vis.bpm is not None:
                        print(f"[{ts}] BPM={vis.bpm}")
                    else:
                        print(f"[{ts}] Waiting for signal…")
                continue

            cv2.imshow(WINDOW_NAME, canvas)
            key = cv2.waitKey(1) & 0xFF
            if key in (ord("q"), 27):          # q or ESC
                logger.info("Quit requested by user.")
                break
            elif key == ord(" "):
                if not session.running:
                    vis.show_bpm(None)
                try:
                    session.toggle()
                except DeviceUnavailable as exc:
                    logger.error("Failed to access camera: %s", exc)
            elif key == ord("r"):
                session.estimator.reset()
                logger.info("Signal buffer reset.")
            _sync_window_size(vis, session)

    except KeyboardInterrupt:
        logger.info("Interrupted.")
    finally:
        session.stop()
        if not args.headless:
            cv2.destroyAllWindows()

    return 0


def main() -> None:
    sys.exit(run(parse_args()))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()
