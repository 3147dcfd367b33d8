"""Exception taxonomy shared by every stage of the pipeline.

All errors derive from ``PCAGuideError``, itself a ``ValueError``, so code that
already guards numerical entry points with ``except ValueError`` keeps working.
Each error records the contract that was violated and the offending value so
callers (and the CLI) can report both without parsing the message.
"""

from typing import Any


class PCAGuideError(ValueError):
    """Base class: a contract of the analysis was violated."""

    def __init__(self, contract: str, value: Any = None, detail: str = ""):
        self.contract = contract
        self.value = value
        self.detail = detail
        msg = f"{contract} (got {value!r})"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)

    def __reduce__(self):
        # joblib workers send errors back to the parent process pickled
        return (type(self), (self.contract, self.value, self.detail))


class InvalidParameter(PCAGuideError):
    """Out-of-range configuration, e.g. remove_var >= 1."""


class DimensionMismatch(PCAGuideError):
    """Matrix and metadata (or label) dimensions cannot be aligned."""


class DegenerateInput(PCAGuideError):
    """Empty matrix, non-finite entries, or zero-variance features under scaling."""


class InsufficientSamples(PCAGuideError):
    """Too few samples for the requested statistic."""


class InsufficientComponents(PCAGuideError):
    """Too few components for the requested heuristic."""


class UnknownAttribute(PCAGuideError):
    """A requested metadata attribute is not present."""


class EmptyIntersection(PCAGuideError):
    """No samples remain in a pair's complete-case subset."""


class RankExceeded(PCAGuideError):
    """The SVD collaborator was asked for more components than the rank bound."""


class PermutationFailed(PCAGuideError):
    """A permutation iteration failed under the strict error policy."""


class AnalysisCancelled(PCAGuideError):
    """Parallel analysis was stopped before all iterations completed."""
