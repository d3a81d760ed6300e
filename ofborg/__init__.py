"""Pull-request build bot pieces: comment parsing, access control, git checkouts, messages and metrics."""

__version__ = "0.1.0"