"""Streaming chat replies."""

from krishi.chat.events import DoneEvent, ErrorEvent, StreamEvent, TokenEvent, sse_frame
from krishi.chat.pipeline import ReplyPipeline, ReplyRequest

__all__ = [
    "DoneEvent",
    "ErrorEvent",
    "ReplyPipeline",
    "ReplyRequest",
    "StreamEvent",
    "TokenEvent",
    "sse_frame",
]
