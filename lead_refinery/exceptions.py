"""
Error taxonomy for the Lead Refinery
"""

from typing import Optional


class RefineryError(Exception):
    """Base class for every error raised by the refinery"""


class TaxonomyConfigurationError(RefineryError):
    """Raised when taxonomy reference data is missing or inconsistent"""


class DiscoveryUnavailable(RefineryError):
    """Evidence search failed, timed out or returned a malformed payload"""


class ResolutionFailed(RefineryError):
    """Classifier output could not be parsed, even after one repair attempt"""

    def __init__(self, message: str, raw_output: Optional[str] = None):
        super().__init__(message)
        self.raw_output = raw_output


class TaxonomyIdUnresolved(RefineryError):
    """Classifier selected an id that does not exist in the registry"""

    def __init__(self, kind: str, taxonomy_id: Optional[str]):
        super().__init__(f"Unresolved {kind} id: {taxonomy_id!r}")
        self.kind = kind
        self.taxonomy_id = taxonomy_id


class InsufficientEntitlement(RefineryError):
    """Caller lacks quota to run or keep a resolution"""
