"""Exceptions raised by jax_motion."""


class JaxMotionError(Exception):
    """Base class for all library errors."""


class InvalidArityError(JaxMotionError, ValueError):
    """A joint value vector does not match the joint type's degrees of freedom."""

    def __init__(self, joint_name: str, expected: int, got: int):
        super().__init__(
            f"Joint '{joint_name}' expects {expected} value component(s), got {got}"
        )
        self.joint_name = joint_name
        self.expected = expected
        self.got = got


class UnknownJointError(JaxMotionError, LookupError):
    """No joint with the requested name exists in the tree."""

    def __init__(self, name: str):
        super().__init__(f"Joint '{name}' not found in kinematic tree")
        self.name = name


class UnknownFrameError(JaxMotionError, LookupError):
    """No frame with the requested name exists in the tree."""

    def __init__(self, name: str):
        super().__init__(f"Frame '{name}' not found in kinematic tree")
        self.name = name


class NoKinematicChainError(JaxMotionError, RuntimeError):
    """The tree has no movable joint, so no tool center point can be resolved."""


class UnknownTCPError(JaxMotionError, KeyError):
    """No tool center point with the requested id is registered."""

    def __init__(self, tcp_id: str):
        super().__init__(f"TCP '{tcp_id}' not found")
        self.tcp_id = tcp_id

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0])
