"""
Core infrastructure package for the Callboard service.

Provides:
- Configuration management via pydantic-settings
- The upstream error taxonomy
- FastAPI dependency injection utilities

Re-exports key components so other modules can write:

    from callboard.core import get_settings, FetchTimeout

Instead of:

    from callboard.core.config import get_settings
    from callboard.core.errors import FetchTimeout

The dependencies module is not re-exported here because it imports the service
layer; import it directly as ``callboard.core.dependencies``.
"""

# =============================================================================
# Re-exports from callboard.core.config
# =============================================================================
from callboard.core.config import Settings, get_settings

# =============================================================================
# Re-exports from callboard.core.errors
# =============================================================================
from callboard.core.errors import (
    UpstreamError,
    FetchTimeout,
    FetchError,
    NoUsableFiltersError,
)

__all__ = [
    # Configuration management (from config.py)
    'Settings',
    'get_settings',
    # Error taxonomy (from errors.py)
    'UpstreamError',
    'FetchTimeout',
    'FetchError',
    'NoUsableFiltersError',
]
