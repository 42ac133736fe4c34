"""Tests for the Ghost collections registered for templates."""

import pytest
import os
from datetime import datetime

import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from ghostattic_pkg.cache import CacheWrapper
from ghostattic_pkg.data_sources import GhostDataSources

GHOST_URL = 'https://cms.example.com'


@pytest.fixture
def sources(mock_api, cache_dir, clock):
    cache = CacheWrapper(directory=cache_dir, clock=clock)
    return GhostDataSources(mock_api, cache=cache)


class TestGhostDataSources:
    """Test cases for GhostDataSources."""

    def test_registers_default_collections(self, sources):
        assert list(sources.collections) == ['footers', 'docs', 'posts', 'authors', 'tags']
        assert set(sources.cache.fetchers) == {
            'ghost_authors', 'ghost_tags', 'ghost_posts', 'ghost_pages', 'ghost_settings',
        }

    def test_base_url_defaults_to_api_url(self, sources):
        assert sources.base_url == GHOST_URL

    def test_posts_query_and_normalization(self, sources, mock_api):
        posts = sources.collection('posts')

        mock_api.posts.browse.assert_called_once_with({'include': 'tags,authors', 'limit': 'all'})
        assert [post['id'] for post in posts] == ['p1', 'p3', 'p2']
        assert posts[0]['url'] == '/first/'
        assert isinstance(posts[0]['published_at'], datetime)

    def test_footers_filter_by_tag(self, sources, mock_api):
        footers = sources.collection('footers')

        mock_api.pages.browse.assert_called_once_with({
            'include': 'authors', 'limit': 'all', 'filter': 'tag:hash-footer',
        })
        assert footers[0]['url'] == '/about/'

    def test_docs_and_footers_cached_separately(self, sources, mock_api):
        sources.collection('docs')
        sources.collection('footers')
        sources.collection('docs')

        assert mock_api.pages.browse.call_count == 2

    def test_authors_cross_linked(self, sources, mock_api):
        authors = {author['id']: author for author in sources.collection('authors')}

        mock_api.authors.browse.assert_called_once_with({'limit': 'all'})
        mock_api.posts.browse.assert_called_once_with({'include': 'authors', 'limit': 'all'})
        assert [post['id'] for post in authors['a1']['posts']] == ['p1', 'p2']
        assert authors['a1']['url'] == '/author/ada/'
        assert 'posts' not in authors['a3']

    def test_tags_cross_linked(self, sources, mock_api):
        tags = {tag['id']: tag for tag in sources.collection('tags')}

        mock_api.tags.browse.assert_called_once_with({'include': 'count.posts', 'limit': 'all'})
        assert [post['id'] for post in tags['t2']['posts']] == ['p2']

    def test_lifetimes(self, sources, mock_api, clock):
        sources.collection('posts')
        sources.site()

        clock.advance(11 * 60)
        sources.collection('posts')
        sources.site()

        assert mock_api.posts.browse.call_count == 1
        assert mock_api.settings.browse.call_count == 2

        clock.advance(86400)
        sources.collection('posts')
        assert mock_api.posts.browse.call_count == 2

    def test_site_settings_with_override(self, mock_api, cache_dir, clock):
        sources = GhostDataSources(mock_api, cache=CacheWrapper(directory=cache_dir, clock=clock),
                                   site_url='https://www.example.com')

        site = sources.site()

        assert site['title'] == 'Example Blog'
        assert site['url'] == 'https://www.example.com'

    def test_site_without_override(self, sources):
        assert sources.site()['url'] == GHOST_URL + '/'

    def test_unreachable_cms_uses_stale_cache(self, sources, mock_api, clock):
        first = sources.collection('posts')

        clock.advance(2 * 86400)
        mock_api.posts.browse.side_effect = ConnectionError('CMS unreachable')

        assert sources.collection('posts') == first

    def test_unreachable_cms_without_cache(self, sources, mock_api):
        mock_api.posts.browse.side_effect = ConnectionError('CMS unreachable')
        mock_api.settings.browse.side_effect = ConnectionError('CMS unreachable')

        assert sources.collection('posts') == []
        assert sources.collection('authors') == [
            {**author, 'url': author['url'].replace(GHOST_URL, '')}
            for author in mock_api.authors.browse()
        ]
        assert sources.site() == {}

    def test_unknown_collection(self, sources):
        with pytest.raises(KeyError):
            sources.collection('nope')

    def test_load_all(self, sources):
        sources.add_collection('broken', lambda: 1 / 0)

        loaded = sources.load_all(max_workers=3)

        assert list(loaded) == ['footers', 'docs', 'posts', 'authors', 'tags', 'broken']
        assert [post['id'] for post in loaded['posts']] == ['p1', 'p3', 'p2']
        assert loaded['broken'] == []
