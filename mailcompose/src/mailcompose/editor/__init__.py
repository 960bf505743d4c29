"""Editor surface consumed by compose sessions.

Interfaces:
  ``DraftHandle``, ``EditorSurface`` and ``EmailDraftEditor``.
"""

from .draft import EmailDraftEditor
from .surface import DraftHandle, EditorSurface

__all__ = ["DraftHandle", "EditorSurface", "EmailDraftEditor"]
