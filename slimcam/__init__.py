"""
slimcam: face-slimming warp engine for selfie photos.

Detect a face (and optionally the upper body), derive the effect geometry,
inverse-warp the face region with a smooth falloff and hand back an image
with exactly the same extent as the capture.
"""

__version__ = "1.0.0"
