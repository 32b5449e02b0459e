from __future__ import annotations

from datetime import datetime
from typing import TypedDict


# PUBLIC_INTERFACE
class TodoEntity(TypedDict):
    """
    A Todo row as returned by the repository layer.

    Fields:
    - id: Store-generated integer identifier
    - title: Short title (trimmed, non-empty on input via schemas)
    - completed: Boolean completion flag
    - created_at: Creation timestamp set by the database
    - updated_at: Last update timestamp set by the database
    """

    id: int
    title: str
    completed: bool
    created_at: datetime
    updated_at: datetime
