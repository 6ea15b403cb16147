"""Shayari Diary: a personal poetry diary with a music player."""

__version__ = "1.0.0"
