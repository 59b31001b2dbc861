"""Delivery destinations for rendered events."""

from __future__ import annotations

from .base import Sink, SinkDeliveryError
from .console import ConsoleSink
from .file import FileSink
from .telegram import TelegramSink

__all__ = ["ConsoleSink", "FileSink", "Sink", "SinkDeliveryError", "TelegramSink"]
