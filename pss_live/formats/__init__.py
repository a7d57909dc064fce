"""Capture file format for offline replay."""

from .capture import read_capture, load_capture, write_capture

__all__ = ['read_capture', 'load_capture', 'write_capture']
