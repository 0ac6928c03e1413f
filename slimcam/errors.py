class SlimCamError(Exception):
    """Base class for every failure the warp pipeline knows how to absorb."""


class InvalidRegion(SlimCamError):
    """Face rectangle is missing, empty or falls completely outside the image."""


class NoFaceDetected(SlimCamError):
    """The face detector ran fine but found nothing."""


class DetectionFailed(SlimCamError):
    """The face detector itself errored out."""


class SegmentationFailed(SlimCamError):
    """The person segmentation model errored out or returned no mask."""


class NumericFailure(SlimCamError):
    """A filter step could not produce an image (bad scale, radius, NaNs...)."""
