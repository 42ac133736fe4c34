"""
Ghostattic - static sites from a Ghost CMS.

Ghostattic pulls posts, pages, tags, authors and settings from the Ghost
Content API, caches them on disk, normalizes the records and renders them
through Jinja2 templates into a static site.
"""

__version__ = "1.0.0"

from .cache import CacheWrapper, CacheResult, CacheStatus
from .content_api import GhostContentAPI, GhostAPIError
from .data_sources import GhostDataSources
from .core import Ghostattic

__all__ = [
    'CacheWrapper',
    'CacheResult',
    'CacheStatus',
    'GhostContentAPI',
    'GhostAPIError',
    'GhostDataSources',
    'Ghostattic',
]
