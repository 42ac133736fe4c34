"""Test configuration and fixtures for Ghostattic tests."""

import pytest
import tempfile
import shutil
import copy
from pathlib import Path
from unittest.mock import Mock

GHOST_URL = 'https://cms.example.com'
API_KEY = '0123456789abcdef0123456789'


class FakeClock:
    """Controllable replacement for time.time."""

    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def make_author(author_id, slug):
    return {'id': author_id, 'slug': slug, 'name': slug.title(), 'url': f'{GHOST_URL}/author/{slug}/'}


def make_tag(tag_id, slug):
    return {'id': tag_id, 'slug': slug, 'name': slug.title(), 'url': f'{GHOST_URL}/tag/{slug}/'}


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def cache_dir(temp_dir):
    path = Path(temp_dir) / '.cache'
    return str(path)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ghost_authors():
    return [make_author('a1', 'ada'), make_author('a2', 'grace'), make_author('a3', 'linus')]


@pytest.fixture
def ghost_tags():
    return [make_tag('t1', 'python'), make_tag('t2', 'web'), make_tag('t3', 'unused')]


@pytest.fixture
def ghost_posts(ghost_authors, ghost_tags):
    """Three posts in fetch order: featured, not featured, featured."""
    ada, grace, _ = ghost_authors
    python, web, _ = ghost_tags
    return [
        {
            'id': 'p1', 'title': 'First', 'slug': 'first', 'featured': True,
            'url': f'{GHOST_URL}/first/', 'published_at': '2023-01-03T09:00:00.000+00:00',
            'primary_author': dict(ada), 'authors': [dict(ada)],
            'tags': [dict(python)], 'primary_tag': dict(python),
        },
        {
            'id': 'p2', 'title': 'Second', 'slug': 'second', 'featured': False,
            'url': f'{GHOST_URL}/second/', 'published_at': '2023-01-02T09:00:00.000Z',
            'primary_author': dict(ada), 'authors': [dict(ada)],
            'tags': [dict(python), dict(web)], 'primary_tag': dict(python),
        },
        {
            'id': 'p3', 'title': 'Third', 'slug': 'third', 'featured': True,
            'url': f'{GHOST_URL}/third/', 'published_at': '2023-01-01T09:00:00.000+00:00',
            'primary_author': dict(grace), 'authors': [dict(grace)],
            'tags': [], 'primary_tag': None,
        },
    ]


@pytest.fixture
def ghost_pages(ghost_authors):
    ada = ghost_authors[0]
    return [
        {
            'id': 'g1', 'title': 'About', 'slug': 'about',
            'url': f'{GHOST_URL}/about/', 'published_at': '2022-12-01T00:00:00.000+00:00',
            'primary_author': dict(ada), 'authors': [dict(ada)],
        },
    ]


@pytest.fixture
def ghost_settings():
    return {'title': 'Example Blog', 'description': 'Thoughts', 'url': GHOST_URL + '/'}


@pytest.fixture
def mock_api(ghost_authors, ghost_tags, ghost_posts, ghost_pages, ghost_settings):
    """A stand-in for GhostContentAPI whose browse calls return deep copies of the fixtures."""
    api = Mock()
    api.url = GHOST_URL
    api.authors.browse.side_effect = lambda *a, **k: copy.deepcopy(ghost_authors)
    api.tags.browse.side_effect = lambda *a, **k: copy.deepcopy(ghost_tags)
    api.posts.browse.side_effect = lambda *a, **k: copy.deepcopy(ghost_posts)
    api.pages.browse.side_effect = lambda *a, **k: copy.deepcopy(ghost_pages)
    api.settings.browse.side_effect = lambda *a, **k: copy.deepcopy(ghost_settings)
    return api


@pytest.fixture
def mock_session():
    """Create a mock requests session."""
    session = Mock()
    session.headers = {}
    return session
