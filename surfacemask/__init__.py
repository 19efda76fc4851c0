"""SurfaceMask — region segmentation and selection for projection masks."""

__version__ = "0.1.0"
