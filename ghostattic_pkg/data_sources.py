"""
Named Ghost collections and site data, wired through the cache wrapper.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Dict, List, Optional

from .cache import CacheWrapper
from .normalize import normalize_pages, normalize_posts, link_author_posts, link_tag_posts

logger = logging.getLogger('Ghostattic.data')

FOOTER_LIFETIME = '30d'
DOCS_LIFETIME = '10d'
POSTS_LIFETIME = '1d'
AUTHORS_LIFETIME = '10d'
TAGS_LIFETIME = '1d'
SETTINGS_LIFETIME = '10m'


def ghost_fetchers(api) -> Dict[str, Callable]:
    """Map cache keys to Content API browse calls."""
    return {
        'ghost_authors': api.authors.browse,
        'ghost_tags': api.tags.browse,
        'ghost_posts': api.posts.browse,
        'ghost_pages': api.pages.browse,
        'ghost_settings': api.settings.browse,
    }


class GhostDataSources:
    """
    Registers the normalized Ghost collections and the ``site`` data used by
    templates.

    Args:
        api: GhostContentAPI (or anything exposing the same resources)
        cache: CacheWrapper; created under ``cache_dir`` when omitted
        base_url: Ghost base URL stripped from every record URL
        site_url: Optional public site URL overriding the Ghost setting
    """

    def __init__(self, api, cache: Optional[CacheWrapper] = None, base_url: Optional[str] = None,
                 site_url: Optional[str] = None, cache_dir: str = '.cache'):
        self.api = api
        self.cache = cache or CacheWrapper(directory=cache_dir)
        for key, fetcher in ghost_fetchers(api).items():
            self.cache.register(key, fetcher)
        self.base_url = base_url if base_url is not None else getattr(api, 'url', None)
        self.site_url = site_url

        self.collections: Dict[str, Callable[[], List[Dict]]] = {}
        self.add_collection('footers', self.footers)
        self.add_collection('docs', self.docs)
        self.add_collection('posts', self.posts)
        self.add_collection('authors', self.authors)
        self.add_collection('tags', self.tags)

    def add_collection(self, name: str, loader: Callable[[], List[Dict]]) -> None:
        self.collections[name] = loader

    def _fetch_list(self, key: str, lifetime: str, query: Dict[str, Any]) -> List[Dict]:
        value = self.cache.fetch_value(key, lifetime, query)
        if value is None:
            logger.warning(f"No data available for {key} {query}")
            return []
        return value

    def footers(self) -> List[Dict]:
        """Pages tagged with #footer."""
        pages = self._fetch_list('ghost_pages', FOOTER_LIFETIME, {
            'include': 'authors',
            'limit': 'all',
            'filter': 'tag:hash-footer',
        })
        return normalize_pages(pages, self.base_url)

    def docs(self) -> List[Dict]:
        """All pages. Named docs so they don't clash with the template ``page`` variable."""
        pages = self._fetch_list('ghost_pages', DOCS_LIFETIME, {
            'include': 'authors',
            'limit': 'all',
        })
        return normalize_pages(pages, self.base_url)

    def posts(self) -> List[Dict]:
        posts = self._fetch_list('ghost_posts', POSTS_LIFETIME, {
            'include': 'tags,authors',
            'limit': 'all',
        })
        return normalize_posts(posts, self.base_url)

    def authors(self) -> List[Dict]:
        authors = self._fetch_list('ghost_authors', AUTHORS_LIFETIME, {'limit': 'all'})
        posts = self._fetch_list('ghost_posts', POSTS_LIFETIME, {
            'include': 'authors',
            'limit': 'all',
        })
        return link_author_posts(authors, posts, self.base_url)

    def tags(self) -> List[Dict]:
        tags = self._fetch_list('ghost_tags', TAGS_LIFETIME, {
            'include': 'count.posts',
            'limit': 'all',
        })
        posts = self._fetch_list('ghost_posts', POSTS_LIFETIME, {
            'include': 'tags,authors',
            'limit': 'all',
        })
        return link_tag_posts(tags, posts, self.base_url)

    def site(self) -> Dict[str, Any]:
        """Site-wide settings, with ``url`` overridden by SITE_URL when set."""
        settings = self.cache.fetch_value('ghost_settings', SETTINGS_LIFETIME)
        site = dict(settings or {})
        if self.site_url:
            site['url'] = self.site_url
        return site

    def collection(self, name: str) -> List[Dict]:
        if name not in self.collections:
            raise KeyError(f"Unknown collection: {name}")
        return self.collections[name]()

    def load_all(self, max_workers: int = 4) -> Dict[str, List[Dict]]:
        """Load every registered collection, concurrently."""
        loaded = {}
        with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
            futures = {executor.submit(loader): name for name, loader in self.collections.items()}
            for future in as_completed(futures):
                name = futures[future]
                try:
                    loaded[name] = future.result()
                    logger.debug(f"Loaded collection {name}: {len(loaded[name])} items")
                except Exception as e:
                    logger.error(f"Error loading collection {name}: {e}")
                    loaded[name] = []
        return {name: loaded[name] for name in self.collections}
