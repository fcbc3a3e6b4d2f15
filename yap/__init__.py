"""yap - multi-distribution package build orchestrator."""

__version__ = "0.1.0"
