"""Dirty/Submission Tracker: decides whether leaving the page needs a prompt."""

from __future__ import annotations

from enum import Enum

UNLOAD_MESSAGE = "入力内容が保存されていません。このページを離れますか？"


class DirtyState(str, Enum):
    CLEAN = "clean"
    DIRTY = "dirty"


class DirtyTracker:
    """CLEAN/DIRTY plus an in-flight submission flag.

    DIRTY whenever unsaved or unsubmitted work exists: a save is pending or
    restored content has not been submitted yet. Only an explicit clear or a
    confirmed successful submission returns it to CLEAN.
    """

    def __init__(self) -> None:
        self.state = DirtyState.CLEAN
        self.is_submitting = False

    @property
    def is_dirty(self) -> bool:
        return self.state is DirtyState.DIRTY

    def mark_dirty(self) -> None:
        self.state = DirtyState.DIRTY

    def mark_clean(self) -> None:
        self.state = DirtyState.CLEAN

    def begin_submission(self) -> None:
        self.is_submitting = True

    def end_submission(self) -> None:
        self.is_submitting = False

    def mark_submission_failed(self) -> None:
        self.is_submitting = False
        self.state = DirtyState.DIRTY

    def disarm(self) -> None:
        """Called right before navigating away after a successful submit."""
        self.mark_clean()
        self.end_submission()

    def before_unload(self) -> str | None:
        """Confirmation text for the unload prompt, or None to leave silently."""
        if self.is_dirty and not self.is_submitting:
            return UNLOAD_MESSAGE
        return None
