# stemness_index/core/exceptions.py
"""Pipeline error types.

Every error records the pipeline stage it came from so batch entry points
can report which step failed.
"""


class StemnessError(Exception):
    """Base class for stemness pipeline failures."""

    stage = "pipeline"

    def __init__(self, message: str, stage: str | None = None):
        super().__init__(message)
        if stage is not None:
            self.stage = stage


class IdentityResolutionError(StemnessError):
    """No identifier could be mapped onto the canonical gene vocabulary."""

    stage = "identity resolution"


class DegenerateClassError(StemnessError):
    """A class split has too few labels or samples to be used."""

    stage = "class split"


class SignatureMismatchError(StemnessError):
    """Target genes are missing from the trained signature."""

    stage = "scoring"


class DegenerateScoreError(StemnessError):
    """All scores in a cohort are identical, so they cannot be rescaled."""

    stage = "rescaling"


class NonFiniteInputError(StemnessError):
    """Training input contains NaN or infinite values."""

    stage = "training"
