"""Errors raised by the complexity grid."""


class ContractViolation(ValueError):
    """The decoder's reports are internally inconsistent.

    Raised for out-of-range or misaligned coordinates, bad unit sizes,
    negative bit counts and group totals smaller than the bits of their
    children.  The picture being processed cannot be trusted afterwards.
    """


class TraceFormatError(ValueError):
    """A recorded decoder trace could not be parsed."""
