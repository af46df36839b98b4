"""History record models."""

from autohistory.db.models import AutoHistory, AutoHistoryMixin, Base

__all__ = [
    "AutoHistory",
    "AutoHistoryMixin",
    "Base",
]
