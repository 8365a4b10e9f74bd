"""
YouTube API Layer.

This package queries YouTube under a chosen client persona through yt-dlp.
"""

from .client import InnertubeSession
from .session import SessionManager, close_session, get_session

__all__ = ["InnertubeSession", "SessionManager", "close_session", "get_session"]
