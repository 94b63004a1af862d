"""Finance backend built around the fixed-account recurrence engine."""

__version__ = "0.1.0"
