"""ffrender: asynchronous ffmpeg render server."""

__version__ = "0.1.0"
