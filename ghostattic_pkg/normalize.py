"""
Normalizers for Ghost collections.

Every function here returns new records and leaves its input untouched, so
values served from the cache can be shared between collections.
"""

import copy
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

URL_REFERENCE_FIELDS = ('primary_author', 'primary_tag')
URL_LIST_FIELDS = ('authors', 'tags')


def strip_domain(url: Optional[str], base_url: Optional[str]) -> Optional[str]:
    """Remove the CMS base URL from ``url``, leaving a site-relative path."""
    if not url or not base_url:
        return url
    base = base_url.rstrip('/')
    if not base:
        return url
    return url.replace(base, '', 1)


def parse_published_at(value: Any) -> Optional[datetime]:
    """Turn a Ghost ISO-8601 timestamp into an aware datetime."""
    if value is None or isinstance(value, datetime):
        return value
    text = str(value).strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    return datetime.fromisoformat(text)


def strip_record_urls(record: Dict[str, Any], base_url: Optional[str]) -> Dict[str, Any]:
    """Strip the base URL from a record and from the authors/tags it references (in place)."""
    if 'url' in record:
        record['url'] = strip_domain(record['url'], base_url)
    for field in URL_REFERENCE_FIELDS:
        ref = record.get(field)
        if isinstance(ref, dict) and 'url' in ref:
            ref['url'] = strip_domain(ref['url'], base_url)
    for field in URL_LIST_FIELDS:
        for ref in record.get(field) or []:
            if isinstance(ref, dict) and 'url' in ref:
                ref['url'] = strip_domain(ref['url'], base_url)
    return record


def normalize_record(record: Dict[str, Any], base_url: Optional[str]) -> Dict[str, Any]:
    """Copy a post or page, strip its URLs and convert published_at."""
    record = copy.deepcopy(record)
    strip_record_urls(record, base_url)
    if 'published_at' in record:
        record['published_at'] = parse_published_at(record['published_at'])
    return record


def normalize_pages(pages: Optional[Iterable[Dict]], base_url: Optional[str]) -> List[Dict]:
    return [normalize_record(page, base_url) for page in pages or []]


def featured_first(posts: List[Dict]) -> List[Dict]:
    # sorted() is stable, so fetch order is kept within each group
    return sorted(posts, key=lambda post: not post.get('featured'))


def normalize_posts(posts: Optional[Iterable[Dict]], base_url: Optional[str]) -> List[Dict]:
    """Normalize posts and bring featured posts to the top of the list."""
    return featured_first([normalize_record(post, base_url) for post in posts or []])


def _attach_posts(records, posts, base_url, matches) -> List[Dict]:
    # Two passes: normalize every post once, then group without mutating.
    linked_posts = [normalize_record(post, base_url) for post in posts or []]

    linked = []
    for record in records or []:
        record = copy.deepcopy(record)
        record_posts = [post for post in linked_posts if matches(record, post)]
        if record_posts:
            record['posts'] = record_posts
        if 'url' in record:
            record['url'] = strip_domain(record['url'], base_url)
        linked.append(record)
    return linked


def _is_primary_author(author, post):
    primary_author = post.get('primary_author') or {}
    return author.get('id') is not None and primary_author.get('id') == author['id']


def _has_tag(tag, post):
    if tag.get('id') is None:
        return False
    return tag['id'] in [post_tag.get('id') for post_tag in post.get('tags') or []]


def link_author_posts(authors, posts, base_url) -> List[Dict]:
    """Attach to each author the posts they are the primary author of."""
    return _attach_posts(authors, posts, base_url, _is_primary_author)


def link_tag_posts(tags, posts, base_url) -> List[Dict]:
    """Attach to each tag the posts carrying it."""
    return _attach_posts(tags, posts, base_url, _has_tag)
