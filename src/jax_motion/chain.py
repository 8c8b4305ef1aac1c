"""Kinematic tree: frame hierarchy, joint updates and forward kinematics.

Frames live in a flat arena (a list indexed by integer ids) and refer to their
parent, children and mimic followers by index. World transforms are cached per
frame behind a dirty bit that the mutating call clears down the affected
subtree; queries recompute only the stale part of the root-to-frame chain.
"""

from collections import deque
from logging import getLogger
from typing import Deque, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from jax import Array

from .core.frame import Extent, Frame, FrameKind
from .core.joint import Components, JointLimit, JointModel, JointType, MimicLink
from .core.pose import Pose, as_matrix
from .errors import InvalidArityError, UnknownFrameError, UnknownJointError
from .transforms import se3

logger = getLogger(__name__)

LimitLike = Union[JointLimit, Tuple[float, float], None]


class KinematicTree:
    """A named hierarchy of link, joint and visual frames.

    Example::

        tree = KinematicTree("base_link")
        tree.add_joint("shoulder", "base_link", "revolute", axis=(0, 0, 1),
                       limit=(-1.57, 1.57), origin=Pose.from_xyz_rpy((0, 0, 0.1)))
        tree.add_link("upper_arm", "shoulder")
        tree.set_joint_value("shoulder", 0.5)
        pose = tree.world_pose("upper_arm")

    Args:
        root_name: Name of the root link.
        origin: Placement of the root in the world (``Pose`` or 4x4 matrix).
    """

    def __init__(self, root_name: str = "base_link", origin=None) -> None:
        self._frames: List[Optional[Frame]] = []
        self._index: Dict[str, int] = {}
        self.structure_version = 0
        self._root = self._add_frame(root_name, FrameKind.LINK, None, origin)

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, name: str) -> bool:
        return name in self._index

    @property
    def root(self) -> Frame:
        return self._frames[self._root]

    @property
    def joint_names(self) -> List[str]:
        """Names of non-fixed joints in depth-first traversal order."""
        return [f.name for f in self.traverse() if f.is_movable_joint]

    # Construction

    def add_link(self, name: str, parent: str, origin=None) -> Frame:
        """Add a structural link frame under ``parent``."""
        return self._frames[self._add_frame(name, FrameKind.LINK, parent, origin)]

    def add_visual(self, name: str, parent: str, origin=None, extent: Optional[Extent] = None) -> Frame:
        """Add a frame carrying renderable geometry.

        Args:
            extent: Optional axis-aligned bounding box ``((xmin, ymin, zmin),
                (xmax, ymax, zmax))`` in the frame's local coordinates.
        """
        if extent is not None:
            lo, hi = (tuple(float(v) for v in corner) for corner in extent)
            if len(lo) != 3 or len(hi) != 3:
                raise ValueError(f"extent of '{name}' must be two 3D corners")
            if any(a > b for a, b in zip(lo, hi)):
                raise ValueError(f"extent of '{name}' has min corner above max corner")
            extent = (lo, hi)
        idx = self._add_frame(name, FrameKind.VISUAL, parent, origin, extent=extent)
        return self._frames[idx]

    def add_joint(
        self,
        name: str,
        parent: str,
        joint_type: Union[JointType, str] = JointType.FIXED,
        origin=None,
        axis: Optional[Sequence[float]] = None,
        limit: LimitLike = None,
        ignore_limits: bool = False,
        field_limits: Optional[Sequence[Optional[JointLimit]]] = None,
    ) -> JointModel:
        """Add a joint frame under ``parent`` and return its model.

        Args:
            origin: Rest placement of the joint relative to ``parent``.
            limit: ``JointLimit`` or ``(lower, upper)`` tuple.
        """
        if limit is not None and not isinstance(limit, JointLimit):
            limit = JointLimit(*limit)
        joint = JointModel(
            name,
            joint_type,
            axis=axis,
            limit=limit,
            ignore_limits=ignore_limits,
            field_limits=field_limits,
        )
        self._add_frame(name, FrameKind.JOINT, parent, origin, joint=joint)
        return joint

    def add_mimic(self, follower: str, driver: str, multiplier: float = 1.0, offset: float = 0.0) -> None:
        """Make ``follower`` track ``driver`` as ``driver * multiplier + offset``.

        The follower is brought in line with the driver's current value right away.

        Raises:
            InvalidArityError: if the two joints have different arities.
            ValueError: for fixed joints, a follower that already has a driver
                or a link that would close a cycle.
        """
        f_idx = self._joint_index(follower)
        d_idx = self._joint_index(driver)
        f_joint = self._frames[f_idx].joint
        d_joint = self._frames[d_idx].joint

        if not (f_joint.is_movable and d_joint.is_movable):
            raise ValueError(f"mimic joints must not be fixed ('{follower}' <- '{driver}')")
        if f_joint.arity != d_joint.arity:
            raise InvalidArityError(follower, d_joint.arity, f_joint.arity)
        if f_joint.driver is not None:
            raise ValueError(f"joint '{follower}' already mimics another joint")

        # Each joint has at most one driver, so walking the driver chain finds cycles.
        cursor: Optional[int] = d_idx
        while cursor is not None:
            if cursor == f_idx:
                raise ValueError(f"mimic link '{follower}' <- '{driver}' would create a cycle")
            cursor = self._frames[cursor].joint.driver

        link = MimicLink(f_idx, float(multiplier), float(offset))
        d_joint.mimics.append(link)
        f_joint.driver = d_idx
        self._apply(f_idx, link.apply(d_joint.value))

    def remove_frame(self, name: str) -> List[str]:
        """Remove ``name`` and its whole subtree. Returns the removed names."""
        idx = self._lookup(name)
        if idx == self._root:
            raise ValueError("the root frame cannot be removed")

        removed = list(self._subtree(idx))
        removed_set = set(removed)
        names = [self._frames[i].name for i in removed]

        self._frames[self._frames[idx].parent].children.remove(idx)
        for i in removed:
            del self._index[self._frames[i].name]
            self._frames[i] = None

        # Drop mimic handles into the removed subtree.
        for frame in self._frames:
            if frame is None or frame.joint is None:
                continue
            frame.joint.mimics = [m for m in frame.joint.mimics if m.follower not in removed_set]
            if frame.joint.driver in removed_set:
                frame.joint.driver = None

        self.structure_version += 1
        logger.debug("Removed %d frame(s) under '%s'", len(names), name)
        return names

    def set_frame_origin(self, name: str, origin) -> None:
        """Place a frame relative to its parent (e.g. move the robot base).

        Raises:
            ValueError: for a joint whose rest origin has already been captured.
        """
        idx = self._lookup(name)
        frame = self._frames[idx]
        if frame.joint is not None and frame.joint.origin is not None:
            raise ValueError(f"rest origin of joint '{name}' is already fixed")
        frame.local = as_matrix(origin)
        self._mark_dirty(idx)

    # Lookup

    def frame(self, name: str) -> Frame:
        return self._frames[self._lookup(name)]

    def has_frame(self, name: str) -> bool:
        return name in self._index

    def joint(self, name: str) -> JointModel:
        return self._frames[self._joint_index(name)].joint

    def traverse(self) -> Iterator[Frame]:
        """Depth-first pre-order walk from the root, children in insertion order."""
        for idx in self._subtree(self._root):
            yield self._frames[idx]

    def ancestors(self, name: str) -> List[Frame]:
        """Frames from the parent of ``name`` up to the root."""
        frame = self._frames[self._lookup(name)]
        result = []
        while frame.parent is not None:
            frame = self._frames[frame.parent]
            result.append(frame)
        return result

    def children(self, name: str) -> List[Frame]:
        return [self._frames[i] for i in self._frames[self._lookup(name)].children]

    # Joint values

    def get_joint_value(self, name: str) -> Tuple[float, ...]:
        return self.joint(name).value

    def joint_values(self) -> Dict[str, Tuple[float, ...]]:
        """Current values of all non-fixed joints."""
        return {f.name: f.joint.value for f in self.traverse() if f.is_movable_joint}

    def set_joint_value(self, name: str, components: Components) -> bool:
        """Set one joint's value(s) and propagate to its mimic followers.

        Returns:
            True if the joint or any follower changed; False when nothing
            changed or ``name`` is not a joint of this tree.

        Raises:
            InvalidArityError: on a component count mismatch (nothing is mutated).
        """
        idx = self._index.get(name)
        if idx is None or self._frames[idx].joint is None:
            logger.warning("Joint '%s' not found; value update ignored", name)
            return False
        return self._apply(idx, components)

    def set_joint_values(self, values: Mapping[str, Components]) -> bool:
        """Set several joints at once.

        Every known entry is validated before anything is applied, so an
        ``InvalidArityError`` leaves the tree untouched. Unknown names are
        skipped with a warning.
        """
        pending: List[Tuple[int, Components]] = []
        for name, components in values.items():
            idx = self._index.get(name)
            if idx is None or self._frames[idx].joint is None:
                logger.warning("Joint '%s' not found; value update ignored", name)
                continue
            joint = self._frames[idx].joint
            if joint.is_movable:
                components = joint.coerce(components)
            pending.append((idx, components))

        changed = False
        for idx, components in pending:
            changed = self._apply(idx, components) or changed
        return changed

    def reset_all(self) -> bool:
        """Set every non-fixed joint to zero.

        Mimic followers are not zeroed directly; they are re-derived from their
        drivers so the mimic relation keeps holding.
        """
        changed = False
        for idx in list(self._subtree(self._root)):
            joint = self._frames[idx].joint
            if joint is not None and joint.is_movable and joint.driver is None:
                changed = self._apply(idx, joint.zero_value()) or changed
        return changed

    # Poses

    def world_matrix(self, name: str) -> Array:
        """(4, 4) world transform of ``name``.

        Raises:
            UnknownFrameError: if the frame does not exist.
        """
        return self._world(self._lookup(name))

    def world_pose(self, name: str) -> Pose:
        """World position and orientation of ``name``.

        Raises:
            UnknownFrameError: if the frame does not exist.
        """
        return Pose.from_matrix(self.world_matrix(name))

    # Internals

    def _add_frame(
        self,
        name: str,
        kind: FrameKind,
        parent: Optional[str],
        origin,
        joint: Optional[JointModel] = None,
        extent: Optional[Extent] = None,
    ) -> int:
        if name in self._index:
            raise ValueError(f"Frame '{name}' already exists")
        parent_idx = None if parent is None else self._lookup(parent)

        idx = len(self._frames)
        self._frames.append(
            Frame(
                name=name,
                kind=kind,
                parent=parent_idx,
                local=as_matrix(origin),
                joint=joint,
                extent=extent,
            )
        )
        self._index[name] = idx
        if parent_idx is not None:
            self._frames[parent_idx].children.append(idx)
        self.structure_version += 1
        return idx

    def _lookup(self, name: str) -> int:
        try:
            return self._index[name]
        except KeyError:
            raise UnknownFrameError(name) from None

    def _joint_index(self, name: str) -> int:
        idx = self._index.get(name)
        if idx is None or self._frames[idx].joint is None:
            raise UnknownJointError(name)
        return idx

    def _subtree(self, idx: int) -> Iterator[int]:
        stack = [idx]
        while stack:
            i = stack.pop()
            yield i
            stack.extend(reversed(self._frames[i].children))

    def _apply(self, idx: int, components: Components) -> bool:
        """Set a joint and walk its mimic followers breadth-first."""
        queue: Deque[Tuple[int, Components]] = deque([(idx, components)])
        changed = False
        while queue:
            i, comps = queue.popleft()
            frame = self._frames[i]
            joint = frame.joint
            if not joint.is_movable:
                continue
            comps = joint.coerce(comps)

            joint.capture_origin(frame.local)
            if joint.set_value(comps):
                frame.local = joint.local_transform()
                self._mark_dirty(i)
                changed = True

            # Followers see the driver's stored (clamped) value for each supplied component.
            driven = tuple(None if c is None else v for c, v in zip(comps, joint.value))
            for link in joint.mimics:
                queue.append((link.follower, link.apply(driven)))
        return changed

    def _mark_dirty(self, idx: int) -> None:
        # A dirty frame's descendants are already dirty, so stop there.
        stack = [idx]
        while stack:
            frame = self._frames[stack.pop()]
            if frame.dirty:
                continue
            frame.dirty = True
            frame.world = None
            stack.extend(frame.children)

    def _world(self, idx: int) -> Array:
        # A clean frame has only clean ancestors: walk up until the first one.
        stale: List[int] = []
        cursor: Optional[int] = idx
        while cursor is not None and self._frames[cursor].dirty:
            stale.append(cursor)
            cursor = self._frames[cursor].parent

        parent_world = se3.identity() if cursor is None else self._frames[cursor].world
        for i in reversed(stale):
            frame = self._frames[i]
            frame.world = se3.multiply(parent_world, frame.local)
            frame.dirty = False
            parent_world = frame.world
        return self._frames[idx].world


def forward_kinematics(
    tree: KinematicTree, values: Optional[Mapping[str, Components]] = None
) -> Dict[str, Array]:
    """Compute world transforms for every frame of the tree.

    Args:
        tree: The kinematic tree.
        values: Optional joint values applied (via ``set_joint_values``) first.

    Returns:
        Dictionary mapping frame names to their (4, 4) world transforms.
    """
    if values:
        tree.set_joint_values(values)
    return {frame.name: tree.world_matrix(frame.name) for frame in tree.traverse()}

