"""Exceptions raised by the capture and session layers."""


class PulseMonitorError(Exception):
    """Base class for pulse monitor errors."""


class DeviceUnavailable(PulseMonitorError, RuntimeError):
    """No capture device could be opened (missing, busy or permission denied)."""


class IlluminationUnsupported(PulseMonitorError):
    """The capture device cannot switch its torch / illumination on or off."""
