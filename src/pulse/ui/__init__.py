from __future__ import annotations

from pulse.ui.history import append_point, counts_frame, history_frame

__all__ = ["append_point", "counts_frame", "history_frame"]
