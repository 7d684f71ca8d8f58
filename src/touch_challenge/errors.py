"""Error types raised by the challenge core."""


class ChallengeError(Exception):
    """Base class for challenge errors."""


class InputUnavailable(ChallengeError):
    """No camera or video stream could be acquired. Fatal to the attempt."""


class ClassificationFailure(ChallengeError):
    """The segmentation provider raised while analysing a frame. Fatal to the attempt."""


class SensorUnavailable(ChallengeError):
    """The motion sensor is missing. Shake suppression is disabled for the attempt."""


class InvalidStateError(ChallengeError):
    """Operation not allowed in the controller's current state."""
