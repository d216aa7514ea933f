"""
Data management infrastructure for rehearsal history.
"""

from .sessions import SessionRecord, SessionStore

__all__ = [
    'SessionRecord',
    'SessionStore',
]
