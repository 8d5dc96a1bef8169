"""
Shared enums used across multiple apps.

These are plain Python StrEnums for use in service logic.
Django model choices are defined on the models themselves.
"""

from enum import StrEnum


class StorageRef(StrEnum):
    """Where key material lives after a request."""
    EPHEMERAL = "ephemeral"


class BundleFormat(StrEnum):
    PEM = "pem"
    PFX = "pfx"
