"""Exception hierarchy for LensFlow."""


class LensFlowError(Exception):
    """Base exception for the application."""


class DuplicatePhotoError(LensFlowError):
    """Raised when a photo id is appended to the store twice."""


class IngestError(LensFlowError):
    """Raised when a file cannot be turned into an image payload."""


class CredentialError(LensFlowError):
    """Raised when no API credential can be obtained."""


class VideoGenerationError(LensFlowError):
    """Raised when a video generation job cannot produce a video."""


class AuthorizationError(VideoGenerationError):
    """Raised when the provider rejects the selected credential."""


class MalformedResultError(VideoGenerationError):
    """Raised when a finished job carries no usable video locator."""


class AnimationTimeoutError(VideoGenerationError):
    """Raised when a job is still running after the configured maximum wait."""
