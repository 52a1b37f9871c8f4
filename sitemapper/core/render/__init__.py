"""
Rendering module - one composition, several surfaces.

The composition is computed once from the model; the raster and PDF
backends only replay it.
"""

from .composition import LiveOverlay, MarkerStyle, compose, hit_test
from .raster import export_raster, rasterize
from .pdf import export_pdf

__all__ = [
    "LiveOverlay",
    "MarkerStyle",
    "compose",
    "hit_test",
    "export_raster",
    "rasterize",
    "export_pdf",
]
