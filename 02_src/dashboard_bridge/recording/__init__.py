"""Recording module."""

from .controller import DEFAULT_TOPICS, IRecordingController, RecordingController

__all__ = ["DEFAULT_TOPICS", "IRecordingController", "RecordingController"]
