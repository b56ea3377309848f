"""
Watch progress persistence.

Stores playback positions for movies and series episodes so the player
can resume where the viewer left off.
"""

from xtreamtv.progress.models import ContentKind, ProgressRecord
from xtreamtv.progress.store import ProgressStore

__all__ = ["ContentKind", "ProgressRecord", "ProgressStore"]
