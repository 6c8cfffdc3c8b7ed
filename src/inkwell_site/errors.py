"""Error hierarchy for inkwell.

All inkwell-specific errors inherit from InkwellError for easy catching.
"""


class InkwellError(Exception):
    """Base error for all inkwell operations."""


class BuildError(InkwellError):
    """Reading content or writing output failed during a build."""


class TemplateError(BuildError):
    """A collection template or the base template could not be read."""


class ServerError(InkwellError):
    """An HTTP or reload server could not bind or keep running."""
