"""Error taxonomy for the relocalization pipeline.

Every stage raises its own subclass so callers can tell "not authenticated"
from "pose not found" from "network unreachable".
"""


class VpsError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(VpsError):
    """Missing map identifiers or credentials, detected before any request."""


class EncodingError(VpsError):
    """Image resize or compression failed."""


class LocalizationError(VpsError):
    retryable = True


class Unauthorized(LocalizationError):
    retryable = False

    def __init__(self, reason: str = "bearer token missing or expired"):
        super().__init__(reason)
        self.reason = reason


class TransportError(LocalizationError):
    def __init__(self, reason: str):
        super().__init__(f"transport failure: {reason}")
        self.reason = reason


class BadStatus(LocalizationError):
    def __init__(self, code: int, body: str = ""):
        super().__init__(f"unexpected HTTP status {code}")
        self.code = code
        self.body = body


class DecodeError(LocalizationError):
    def __init__(self, reason: str):
        super().__init__(f"response decode failed: {reason}")
        self.reason = reason


class PoseError(VpsError):
    """Inputs to pose resolution are unusable."""


class DegeneratePose(PoseError):
    pass


class SingularPose(PoseError):
    pass


class TrackingNotReady(PoseError):
    pass
