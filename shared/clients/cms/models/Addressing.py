"""Addressing schemes: URL-construction conventions for the same logical resource."""

from enum import Enum


class AddressingScheme(str, Enum):
    """
    The two functionally equivalent ways of addressing a file by path.
    Declaration order is the order in which they are tried.
    """
    PRIMARY = "primary"
    FALLBACK = "fallback"

    def other(self) -> "AddressingScheme":
        """Return the scheme that is not this one."""
        return AddressingScheme.FALLBACK if self is AddressingScheme.PRIMARY else AddressingScheme.PRIMARY
