"""Options, DB management, caching and scan orchestration for a vulnerability scanner."""

__version__ = "0.1.0"