"""
Core module for configuration, logging, auth and the test execution engine.

auth and security are not imported at package level because they import
examhub.models; import them directly.
"""
from .config import settings

__all__ = ["settings"]
