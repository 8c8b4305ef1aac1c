"""Tool center point (TCP) resolution.

The TCP is the working point of the end effector. ``TCPResolver`` picks a
reference frame on the kinematic tree (the deepest piece of geometry along the
chain), finds the tip of its bounding box and applies a tool offset expressed
in the reference frame's orientation. ``TCPRegistry`` keeps a set of named
tool definitions with one undeletable default.
"""

import itertools
import weakref
from dataclasses import dataclass, replace
from logging import getLogger
from typing import Dict, List, Optional, Sequence, Tuple

import jax.numpy as jnp

from .chain import KinematicTree
from .core.frame import Frame, FrameKind
from .core.pose import Pose
from .errors import NoKinematicChainError, UnknownTCPError
from .transforms import se3, so3

logger = getLogger(__name__)

# Weight of the distance from the world origin when scoring candidate frames;
# only separates candidates at the same joint depth.
TIE_BREAK_WEIGHT = 1e-3

DEFAULT_TCP_ID = "default"

Offset = Tuple[float, float, float]


def _as_offset(offset: Sequence[float]) -> Offset:
    offset = tuple(float(v) for v in offset)
    if len(offset) != 3:
        raise ValueError(f"TCP offset must have 3 components, got {len(offset)}")
    return offset


class TCPResolver:
    """Locates the tool center point of a kinematic tree.

    The selected reference frame is cached for the last tree seen, keyed by a
    weak reference to the tree and its ``structure_version``; joint motion does
    not invalidate the cache, structural edits do.
    """

    def __init__(self) -> None:
        self._tree_ref: Optional[weakref.ref] = None
        self._version: Optional[int] = None
        self._reference: Optional[str] = None

    def invalidate(self) -> None:
        """Forget the cached reference frame."""
        self._tree_ref = None
        self._version = None
        self._reference = None

    def reference_frame(self, tree: KinematicTree) -> str:
        """Name of the frame the TCP is attached to.

        Raises:
            NoKinematicChainError: if the tree has no non-fixed joint.
        """
        cached_tree = self._tree_ref() if self._tree_ref is not None else None
        if cached_tree is tree and self._version == tree.structure_version:
            return self._reference

        reference = self._select(tree)
        self._tree_ref = weakref.ref(tree)
        self._version = tree.structure_version
        self._reference = reference
        logger.debug("TCP reference frame: '%s'", reference)
        return reference

    def resolve(self, tree: KinematicTree, offset: Sequence[float] = (0.0, 0.0, 0.0)) -> Pose:
        """World pose of the TCP for the tree's current joint values.

        The position is the reference tip plus ``offset`` rotated into the
        reference frame's orientation; the orientation is the reference's.
        """
        name = self.reference_frame(tree)
        world = tree.world_matrix(name)
        rotation = se3.get_rotation(world)
        tip = self._tip(tree, tree.frame(name), world)
        position = tip + so3.apply(rotation, jnp.asarray(_as_offset(offset), dtype=jnp.float64))
        return Pose(position=position, orientation=so3.to_quaternion(rotation))

    def _select(self, tree: KinematicTree) -> str:
        frames = list(tree.traverse())
        joints = [f for f in frames if f.is_movable_joint]
        if not joints:
            raise NoKinematicChainError("kinematic tree has no movable joint")

        visuals = [f for f in frames if f.kind is FrameKind.VISUAL]
        if not visuals:
            last = joints[-1]
            children = tree.children(last.name)
            return children[0].name if children else last.name

        def score(frame: Frame) -> float:
            depth = sum(1 for a in tree.ancestors(frame.name) if a.is_movable_joint)
            distance = float(jnp.linalg.norm(se3.get_position(tree.world_matrix(frame.name))))
            return depth + TIE_BREAK_WEIGHT * distance

        # max() keeps the first of equal scores, i.e. traversal order.
        return max(visuals, key=score).name

    def _tip(self, tree: KinematicTree, frame: Frame, world) -> jnp.ndarray:
        if frame.extent is None:
            return se3.get_position(world)

        corners = se3.apply(world, frame.corners())
        anchor_name = next(
            (a.name for a in tree.ancestors(frame.name) if a.is_movable_joint),
            tree.root.name,
        )
        anchor = se3.get_position(tree.world_matrix(anchor_name))
        distances = jnp.linalg.norm(corners - anchor, axis=-1)
        return corners[jnp.argmax(distances)]


@dataclass(frozen=True)
class ToolCenterPoint:
    """A named tool definition.

    Attributes:
        id: Registry key.
        name: Display name.
        offset: Tool offset in the reference frame (meters).
        is_default: Whether this is the registry's undeletable default.
    """

    id: str
    name: str
    offset: Offset = (0.0, 0.0, 0.0)
    is_default: bool = False


class TCPRegistry:
    """Named TCP definitions with one default and one active entry."""

    def __init__(self, resolver: Optional[TCPResolver] = None) -> None:
        self.resolver = resolver if resolver is not None else TCPResolver()
        default = ToolCenterPoint(DEFAULT_TCP_ID, "Default TCP", is_default=True)
        self._tcps: Dict[str, ToolCenterPoint] = {default.id: default}
        self._active = default.id
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._tcps)

    def __contains__(self, tcp_id: str) -> bool:
        return tcp_id in self._tcps

    @property
    def default(self) -> ToolCenterPoint:
        return self._tcps[DEFAULT_TCP_ID]

    @property
    def active(self) -> ToolCenterPoint:
        return self._tcps[self._active]

    def get(self, tcp_id: str) -> ToolCenterPoint:
        try:
            return self._tcps[tcp_id]
        except KeyError:
            raise UnknownTCPError(tcp_id) from None

    def all(self) -> List[ToolCenterPoint]:
        return list(self._tcps.values())

    def add(
        self,
        offset: Sequence[float] = (0.0, 0.0, 0.0),
        name: Optional[str] = None,
        tcp_id: Optional[str] = None,
    ) -> ToolCenterPoint:
        """Register a TCP; ids are generated as ``tcp-<n>`` when not given."""
        if tcp_id is None:
            tcp_id = f"tcp-{next(self._ids)}"
            while tcp_id in self._tcps:
                tcp_id = f"tcp-{next(self._ids)}"
        elif tcp_id in self._tcps:
            raise ValueError(f"TCP '{tcp_id}' already exists")

        tcp = ToolCenterPoint(tcp_id, name if name is not None else tcp_id, _as_offset(offset))
        self._tcps[tcp_id] = tcp
        return tcp

    def remove(self, tcp_id: str) -> bool:
        """Remove a TCP. The default cannot be removed and yields ``False``.

        Removing the active TCP makes the default active again.
        """
        tcp = self.get(tcp_id)
        if tcp.is_default:
            logger.warning("The default TCP cannot be removed")
            return False
        del self._tcps[tcp_id]
        if self._active == tcp_id:
            self._active = DEFAULT_TCP_ID
        return True

    def update_offset(self, tcp_id: str, offset: Sequence[float]) -> ToolCenterPoint:
        tcp = replace(self.get(tcp_id), offset=_as_offset(offset))
        self._tcps[tcp_id] = tcp
        return tcp

    def set_active(self, tcp_id: str) -> ToolCenterPoint:
        tcp = self.get(tcp_id)
        self._active = tcp_id
        return tcp

    def resolve(self, tree: KinematicTree, tcp_id: Optional[str] = None) -> Pose:
        """World pose of ``tcp_id`` (the active TCP by default)."""
        tcp = self.active if tcp_id is None else self.get(tcp_id)
        return self.resolver.resolve(tree, tcp.offset)
