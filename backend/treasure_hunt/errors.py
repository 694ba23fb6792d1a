from __future__ import annotations


class HuntError(Exception):
    """
    Base for every failure returned to a caller as a structured (code, message) pair.

    `reason` is an optional finer-grained sub-code (e.g. "group-mismatch") that bulk
    import reuses as its per-row error code.
    """
    code = "internal"
    status_code = 500

    def __init__(self, message: str, reason: str | None = None):
        super().__init__(message)
        self.message = message
        self.reason = reason

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class InvalidArgument(HuntError):
    code = "invalid-argument"
    status_code = 400


class Unauthenticated(HuntError):
    code = "unauthenticated"
    status_code = 401


class PermissionDenied(HuntError):
    code = "permission-denied"
    status_code = 403


class NotFound(HuntError):
    code = "not-found"
    status_code = 404


class AlreadyExists(HuntError):
    code = "already-exists"
    status_code = 409


class FailedPrecondition(HuntError):
    code = "failed-precondition"
    status_code = 412


class Aborted(HuntError):
    """Optimistic transaction gave up after repeated concurrent modification."""
    code = "aborted"
    status_code = 409


class ConfigError(FailedPrecondition):
    """Server misconfiguration (missing secret, unresolvable bootstrap identity)."""


# ---------- claim token failures ----------

class MalformedToken(InvalidArgument):
    pass


class BadSignature(PermissionDenied):
    pass


class Expired(PermissionDenied):
    pass
