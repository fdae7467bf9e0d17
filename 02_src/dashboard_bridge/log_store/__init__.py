"""Log store module."""

from .store import ILogStore, LogStore, canonical, parse_records

__all__ = ["ILogStore", "LogStore", "canonical", "parse_records"]
