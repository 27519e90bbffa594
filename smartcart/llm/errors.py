from __future__ import annotations


class AdvisorError(Exception):
    """Base class for anything that makes the advisor's answer unusable."""


class AdvisorUnavailable(AdvisorError):
    """The advisor could not be reached, timed out, or returned nothing."""


class AdvisorMalformedResponse(AdvisorError):
    """The advisor answered, but not with a usable structured block."""
