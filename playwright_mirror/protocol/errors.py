"""Exceptions raised by the mirroring protocol."""

from .codes import ErrorCode


class MirrorError(Exception):
    """Base exception for mirroring errors."""
    pass


class ProtocolError(MirrorError):
    """A frame could not be decoded."""
    pass


class RecordingError(MirrorError):
    """A recorded change stream could not be read."""
    pass


class SignalingServerDisconnectedError(MirrorError):
    """The signaling server went away or the session can no longer continue."""

    def __init__(self, reason: str | None = None):
        self.reason = reason
        message = "Signaling server disconnected"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class RoleConflictError(MirrorError):
    """A connection asked for a role it cannot hold.

    Only ``fatal`` conflicts close the offending connection; the others are
    reported and the caller may retry.
    """

    code: ErrorCode
    fatal: bool = False

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code.value)

    @staticmethod
    def from_code(code: str) -> "RoleConflictError":
        """Build the exception matching a wire error code.

        Raises:
            ProtocolError: If the code is unknown.
        """
        for cls in (
            LeaderAlreadyConnectedError,
            LeaderCannotBeFollowerError,
            FollowerAlreadyConnectedError,
            FollowerCannotBeLeaderError,
        ):
            if cls.code.value == code:
                return cls()
        raise ProtocolError(f"Unknown error code: {code}")


class LeaderAlreadyConnectedError(RoleConflictError):
    """A leader is already registered; the new connection is closed."""

    code = ErrorCode.LEADER_ALREADY_CONNECTED
    fatal = True


class LeaderCannotBeFollowerError(RoleConflictError):
    """The current leader tried to register as a follower."""

    code = ErrorCode.LEADER_CANNOT_BE_FOLLOWER


class FollowerAlreadyConnectedError(RoleConflictError):
    """The connection is already registered as a follower."""

    code = ErrorCode.FOLLOWER_ALREADY_CONNECTED


class FollowerCannotBeLeaderError(RoleConflictError):
    """A registered follower tried to become the leader."""

    code = ErrorCode.FOLLOWER_CANNOT_BE_LEADER
