"""Common exceptions for fragment store backends."""
from __future__ import annotations

from studyowl.errors import UpstreamServiceError


class FragmentStoreUnavailableError(UpstreamServiceError):
    """Raised when the fragment store backend cannot be initialised, written or read."""
