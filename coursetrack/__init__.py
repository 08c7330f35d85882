"""Course progress tracking with certificate issuance and enrollment reconciliation."""

__version__ = "0.1.0"
