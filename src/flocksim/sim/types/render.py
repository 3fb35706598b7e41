from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pygame.math import Vector3


@dataclass(slots=True, frozen=True)
class RenderRecord:
    """Per-agent transform handed to a renderer after a tick.

    ``forward`` is ``None`` when the agent is nearly still, in which case the renderer keeps
    whatever orientation it last drew.
    """

    id: int
    position: Vector3
    size: float
    forward: Optional[Vector3]
    species: int
