"""
rigwatch.services.errors — Remote-call failures
================================================

Raised by the HTTP clients and caught per lobby by the notification
service.  Store failures are *not* modeled here: SQLAlchemy errors
propagate untouched and abort the run.
"""

from __future__ import annotations


class RigwatchError(Exception):
    """Base class for Rigwatch failures."""


class UpstreamError(RigwatchError):
    """A remote API call failed or returned a body we could not decode."""


class NotFound(RigwatchError):
    """A remote lookup succeeded but returned no matching record."""
