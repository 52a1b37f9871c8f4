"""Exceptions raised by the annotation core."""


class SiteMapperError(Exception):
    """Base class for every error surfaced by sitemapper."""


class ImageDecodeError(SiteMapperError, ValueError):
    """An image or photo payload could not be decoded."""


class ExportError(SiteMapperError, RuntimeError):
    """Rasterization, encoding or document serialization failed."""


class ProjectNotFoundError(SiteMapperError, KeyError):
    """No project is stored under the requested id."""


class ImportFormatError(SiteMapperError, ValueError):
    """An import payload has none of the accepted shapes."""
