"""
Error types for the variant pipeline.

Every failure during a generation run aborts the whole run; the app turns
these into a single human-readable message.
"""


class OptimizerError(Exception):
    """Base class for pipeline failures."""
    pass


class CollaboratorUnavailable(OptimizerError):
    """Background-removal service could not be reached (auth, transport, HTTP error)."""
    pass


class ExtractionFailed(OptimizerError):
    """Background-removal service answered but returned no usable image."""
    pass


class SurfaceAcquisitionFailed(OptimizerError):
    """A drawing surface could not be allocated."""
    pass


class NoSourceImage(OptimizerError):
    """Generate was requested before any photo was loaded."""
    pass


class GenerationInProgress(OptimizerError):
    """A generation run is already active for this session."""
    pass


class StaleGenerationError(OptimizerError):
    """The source photo changed while a run was in flight; its result was discarded."""

    def __init__(self, started_epoch: int, current_epoch: int):
        self.started_epoch = started_epoch
        self.current_epoch = current_epoch
        super().__init__(
            f"Source image changed during generation "
            f"(epoch {started_epoch} -> {current_epoch}), result discarded"
        )
