"""
Pulse Monitor — fingertip photoplethysmography via a phone-style camera.
Press your fingertip against the lens (torch on if available); the system
turns each frame into one brightness sample, detects heartbeats as falling
crossings through the window average and computes BPM.
"""

__version__ = "0.1.0"
__author__ = "pulse_monitor"
