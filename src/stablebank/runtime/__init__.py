"""Runtime wiring for applications embedding the bank."""

from stablebank.runtime.logging_config import configure_logging

__all__ = ["configure_logging"]
