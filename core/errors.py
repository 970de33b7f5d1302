"""Error taxonomy for LibrasSign core.

None of these are fatal to the process: user input errors are reported and
the operation is skipped, unavailable resources degrade the pipeline, and
transient detector failures drop a single frame.
"""

from __future__ import annotations


class LibrasSignError(Exception):
    """Base class for all LibrasSign errors."""


class UserInputError(LibrasSignError, ValueError):
    """Invalid request from the user; the operation is not performed."""


class DatasetFormatError(UserInputError):
    """Dataset payload is missing required fields or is malformed."""


class ModelFormatError(UserInputError):
    """External classifier files are structurally invalid."""


class ResourceUnavailableError(LibrasSignError, RuntimeError):
    """A required collaborator (classifier, detector) is not ready."""


class TransientDetectorError(LibrasSignError, RuntimeError):
    """A single frame failed to process."""
