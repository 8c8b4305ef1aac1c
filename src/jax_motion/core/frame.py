"""Frame nodes stored in the kinematic tree's arena."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

import jax.numpy as jnp
from jax import Array

from .joint import JointModel

Extent = Tuple[Tuple[float, float, float], Tuple[float, float, float]]


class FrameKind(str, Enum):
    """What a frame represents.

    ``LINK`` frames are structural bodies, ``JOINT`` frames carry a
    ``JointModel`` and ``VISUAL`` frames stand for renderable geometry.
    """

    LINK = "link"
    JOINT = "joint"
    VISUAL = "visual"


@dataclass(eq=False)
class Frame:
    """A node of the kinematic tree.

    Attributes:
        name: Frame name, unique within the tree.
        kind: The frame's ``FrameKind``.
        parent: Arena index of the parent frame, ``None`` for the root.
        local: (4, 4) transform relative to the parent.
        children: Ordered arena indices of child frames.
        joint: Joint model of ``JOINT`` frames.
        extent: Axis-aligned bounding box ``(min_xyz, max_xyz)`` in local
            coordinates for frames that carry geometry.
        world: Cached (4, 4) world transform, valid while ``dirty`` is False.
        dirty: Whether ``world`` must be recomputed.
    """

    name: str
    kind: FrameKind
    parent: Optional[int]
    local: Array
    children: List[int] = field(default_factory=list)
    joint: Optional[JointModel] = None
    extent: Optional[Extent] = None
    world: Optional[Array] = None
    dirty: bool = True

    @property
    def is_movable_joint(self) -> bool:
        return self.joint is not None and self.joint.is_movable

    def corners(self) -> Array:
        """(8, 3) corners of ``extent`` in local coordinates."""
        if self.extent is None:
            raise ValueError(f"frame '{self.name}' has no extent")
        (x0, y0, z0), (x1, y1, z1) = self.extent
        return jnp.array(
            [[x, y, z] for x in (x0, x1) for y in (y0, y1) for z in (z0, z1)],
            dtype=jnp.float64,
        )
