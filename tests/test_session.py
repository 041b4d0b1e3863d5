"""
Unit tests for MonitorSession, the capture device, brightness extraction,
configuration and the visualizer.
Run with:  pytest tests/
"""

from __future__ import annotations

import itertools
import threading
import time

import numpy as np
import pytest

from pulse_monitor.brightness import average_brightness
from pulse_monitor.camera import CaptureDevice
from pulse_monitor.config import MonitorConfig, hex_to_bgr, parse_size
from pulse_monitor.errors import DeviceUnavailable, IlluminationUnsupported
from pulse_monitor.session import MonitorSession
from pulse_monitor.visualizer import Visualizer


class FakeDevice:
    """Capture device that hands out pre-recorded 'frames'."""

    def __init__(self, frames=(), torch=True, fail=False):
        self.frames = list(frames)
        self.torch = torch
        self.fail = fail
        self.is_open = False
        self.released = 0
        self.illumination = []

    def acquire(self):
        if self.fail:
            raise DeviceUnavailable("no camera")
        self.is_open = True

    def set_illumination(self, on):
        if not self.torch:
            raise IlluminationUnsupported("no torch")
        self.illumination.append(on)

    def read_frame(self):
        if not self.is_open:
            raise RuntimeError("closed")
        return self.frames.pop(0) if self.frames else None

    def release(self):
        self.is_open = False
        self.released += 1


def _session(device, **overrides):
    """Session whose 'frames' are brightness values and whose clock ticks 0.5 s."""
    ticks = itertools.count(0.0, 0.5)
    config = MonitorConfig(warmup_seconds=0.0, **overrides)
    return MonitorSession(
        device,
        config,
        clock=lambda: next(ticks),
        extract=lambda frame, size: frame,
    )


# ---------------------------------------------------------------------------
# MonitorSession tests
# ---------------------------------------------------------------------------

class TestMonitorSession:

    def test_oscillating_frames_give_60_bpm(self):
        values = [0.2 if i % 2 == 0 else 0.8 for i in range(10)]
        session = _session(FakeDevice(values))
        assert session.start() is True
        readings = [session.process_frame() for _ in values]
        assert readings[-1].bpm == 60
        assert [c.timestamp for c in readings[-1].stats.crossings] == [
            1000.0, 2000.0, 3000.0, 4000.0,
        ]

    def test_start_turns_torch_on_and_stop_turns_it_off(self):
        device = FakeDevice([0.5])
        session = _session(device)
        session.start()
        session.stop()
        assert device.illumination == [True, False]
        assert device.released == 1

    def test_device_failure_leaves_buffer_untouched(self):
        session = _session(FakeDevice(fail=True))
        session.estimator.on_sample(0.5, 0.0)
        with pytest.raises(DeviceUnavailable):
            session.start()
        assert not session.running
        assert len(session.estimator.snapshot()) == 1

    def test_missing_torch_is_not_fatal(self):
        session = _session(FakeDevice([0.4], torch=False))
        assert session.start() is True
        assert session.running
        assert session.process_frame() is not None

    def test_start_clears_previous_session_data(self):
        session = _session(FakeDevice([0.4]))
        session.estimator.on_sample(0.9, 0.0)
        session.start()
        assert session.estimator.snapshot() == ()

    def test_stop_is_idempotent(self):
        device = FakeDevice()
        session = _session(device)
        session.stop()
        assert device.released == 0
        session.start()
        session.stop()
        session.stop()
        assert device.released == 1
        assert session.estimator.snapshot() == ()

    def test_process_frame_requires_running_session(self):
        session = _session(FakeDevice([0.5]))
        with pytest.raises(RuntimeError):
            session.process_frame()

    def test_missing_frames_stop_the_session(self):
        device = FakeDevice()
        session = _session(device, max_missing_frames=3)
        session.start()
        assert session.process_frame() is None
        assert session.process_frame() is None
        assert session.running
        assert session.process_frame() is None
        assert not session.running
        assert device.released == 1

    def test_missing_frame_streak_resets(self):
        device = FakeDevice([0.5])
        session = _session(device, max_missing_frames=2)
        session.start()
        assert session.process_frame() is not None
        assert session.process_frame() is None
        device.frames.append(0.6)
        assert session.process_frame() is not None
        assert session.process_frame() is None
        assert session.running

    def test_non_finite_brightness_is_skipped(self):
        session = _session(FakeDevice([float("nan"), 0.5]))
        session.start()
        assert session.process_frame() is None
        reading = session.process_frame()
        assert reading is not None
        assert len(session.estimator.snapshot()) == 1

    def test_readings_until_device_dries_up(self):
        session = _session(FakeDevice([0.2, 0.8, 0.2, 0.8]), max_missing_frames=2)
        session.start()
        readings = list(session.readings())
        assert len(readings) == 4
        assert not session.running

    def test_toggle(self):
        device = FakeDevice()
        session = _session(device)
        assert session.toggle() is True
        assert session.toggle() is False
        assert device.released == 1

    def test_stop_during_warmup(self):
        device = FakeDevice([0.5])
        session = MonitorSession(device, MonitorConfig(warmup_seconds=5.0))
        timer = threading.Timer(0.2, session.stop)
        timer.start()
        began = time.monotonic()
        assert session.start() is False
        assert time.monotonic() - began < 4.0
        timer.join()
        assert not session.running
        assert device.released == 1

    def test_no_samples_during_warmup(self):
        device = FakeDevice([0.5, 0.6])
        session = MonitorSession(
            device,
            MonitorConfig(warmup_seconds=0.6),
            extract=lambda frame, size: frame,
        )
        starter = threading.Thread(target=session.start)
        starter.start()
        time.sleep(0.2)
        assert session.running
        assert session.process_frame() is None
        assert session.estimator.snapshot() == ()
        assert device.frames == [0.5, 0.6]
        starter.join()
        assert session.process_frame() is not None
        assert len(session.estimator.snapshot()) == 1
        session.stop()

    def test_stop_while_opening_device(self):
        class SlowDevice(FakeDevice):
            def __init__(self, session_ref, frames=()):
                super().__init__(frames)
                self.session_ref = session_ref

            def acquire(self):
                super().acquire()
                self.session_ref[0].stop()

        ref = []
        device = SlowDevice(ref, [0.5])
        session = _session(device)
        ref.append(session)
        assert session.start() is False
        assert not session.running
        assert device.released == 1
        assert device.illumination == []

    def test_context_manager(self):
        device = FakeDevice([0.5])
        with _session(device) as session:
            assert session.running
        assert device.released == 1


# ---------------------------------------------------------------------------
# CaptureDevice tests (no hardware needed)
# ---------------------------------------------------------------------------

class TestCaptureDevice:

    def test_read_before_acquire_raises(self):
        cam = CaptureDevice(use_picamera2=False)
        with pytest.raises(RuntimeError):
            cam.read_frame()

    def test_release_when_closed_is_noop(self):
        cam = CaptureDevice(use_picamera2=False)
        cam.release()
        assert not cam.is_open

    def test_picamera2_start_failure_closes_camera(self, monkeypatch):
        from pulse_monitor import camera as camera_module

        class BrokenPicamera2:
            instances = []

            def __init__(self):
                self.closed = False
                BrokenPicamera2.instances.append(self)

            def create_video_configuration(self, **kwargs):
                return kwargs

            def configure(self, config):
                raise RuntimeError("pipeline handler in use")

            def close(self):
                self.closed = True

        monkeypatch.setattr(camera_module, "Picamera2", BrokenPicamera2, raising=False)
        cam = CaptureDevice(use_picamera2=True)
        with pytest.raises(DeviceUnavailable):
            cam.acquire()
        assert not cam.is_open
        assert BrokenPicamera2.instances[0].closed

    def test_torch_unsupported(self):
        cam = CaptureDevice(use_picamera2=False)
        with pytest.raises(IlluminationUnsupported):
            cam.set_illumination(True)


# ---------------------------------------------------------------------------
# Brightness extraction
# ---------------------------------------------------------------------------

class TestBrightness:

    def test_red_green_average(self):
        frame = np.zeros((120, 160, 3), dtype=np.uint8)
        frame[:, :, 0] = 255   # blue is ignored
        frame[:, :, 1] = 100
        frame[:, :, 2] = 50
        assert average_brightness(frame) == pytest.approx(75 / 255)

    def test_grayscale_frame(self):
        frame = np.full((48, 64), 51, dtype=np.uint8)
        assert average_brightness(frame, (10, 10)) == pytest.approx(0.2)

    def test_range(self):
        rng = np.random.default_rng(5)
        frame = rng.integers(0, 256, (90, 90, 3), dtype=np.uint8)
        assert 0.0 <= average_brightness(frame) <= 1.0


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class TestConfig:

    def test_defaults(self):
        config = MonitorConfig().validate()
        assert config.capacity == 300
        assert config.warmup_seconds == 1.5
        assert config.sample_size == (30, 30)

    @pytest.mark.parametrize("overrides", [
        {"capacity": 0},
        {"warmup_seconds": -1.0},
        {"graph_size": (0, 100)},
        {"max_missing_frames": 0},
        {"fps": 0},
        {"graph_size": (100, 8), "graph_width": 6},
        {"graph_size": (100, 12), "graph_width": 6},
        {"graph_color": "red"},
        {"graph_color": "#zzzzzz"},
    ])
    def test_invalid(self, overrides):
        with pytest.raises(ValueError):
            MonitorConfig(**overrides).validate()

    def test_parse_size(self):
        assert parse_size("640X480") == (640, 480)
        with pytest.raises(ValueError):
            parse_size("640")

    def test_hex_to_bgr(self):
        assert hex_to_bgr("#2866eb") == (0xEB, 0x66, 0x28)
        with pytest.raises(ValueError):
            hex_to_bgr("#fff")


# ---------------------------------------------------------------------------
# Visualizer tests
# ---------------------------------------------------------------------------

class TestVisualizer:

    def test_blank_surface(self):
        vis = Visualizer(size=(320, 120))
        canvas = vis.render([])
        assert canvas.shape == (120, 320, 3)
        assert canvas.max() == 0

    def test_waveform_is_stroked(self):
        vis = Visualizer(size=(320, 120), graph_color="#2866eb", graph_width=6)
        canvas = vis.render([(10.0, 6.0), (160.0, 114.0), (310.0, 6.0)])
        assert canvas.max() > 0
        # BGR: the stroke colour is mostly blue
        assert canvas[:, :, 0].max() > canvas[:, :, 2].max()

    def test_bpm_readout(self):
        vis = Visualizer(size=(320, 120))
        vis.show_bpm(72)
        assert vis.bpm == 72
        assert vis.render([]).max() > 0
        vis.show_bpm(None)
        assert vis.render([]).max() == 0

    def test_resize_updates_geometry(self):
        vis = Visualizer(size=(320, 120), graph_width=4)
        vis.resize(800, 300)
        assert vis.geometry.width == 800
        assert vis.geometry.height == 300
        assert vis.geometry.line_width == 4
        assert vis.render([]).shape == (300, 800, 3)
