"""
Jinja2 filters available to templates.
"""

import re
import math
import unicodedata
from datetime import date, datetime, timezone
from email.utils import format_datetime
from urllib.parse import urljoin

import csscompressor
import rjsmin

from .normalize import parse_published_at

WORDS_PER_MINUTE = 200


def reading_time(text):
    """Estimated minutes to read ``text`` at 200 words per minute."""
    number_of_words = len(re.split(r'\s', text or ''))
    return math.ceil(number_of_words / WORDS_PER_MINUTE)


def _to_datetime(value):
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    return parse_published_at(value)


def _to_utc(value):
    dt = _to_datetime(value)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def html_date_string(value):
    """Format a date as YYYY-MM-DD (UTC) for <time datetime>."""
    return _to_utc(value).strftime('%Y-%m-%d')


def date_to_rfc3339(value):
    return _to_utc(value).isoformat().replace('+00:00', 'Z')


def date_to_rfc822(value):
    return format_datetime(_to_utc(value))


def newest_collection_item_date(items, field='published_at'):
    """Most recent date in a collection, for feed <updated> elements."""
    dates = [_to_utc(item[field]) for item in items or [] if item.get(field)]
    if not dates:
        return None
    return max(dates)


def absolute_url(url, base):
    return urljoin(base or '', url or '')


def html_to_absolute_urls(content, base):
    """Rewrite relative href/src attributes in an HTML fragment against ``base``."""
    def replace(match):
        attr, quote, url = match.groups()
        if re.match(r'^(?:[a-z][a-z0-9+.-]*:|//|#)', url, re.IGNORECASE):
            return match.group(0)
        return f'{attr}={quote}{absolute_url(url, base)}{quote}'

    return re.sub(r'\b(href|src)=(["\'])(.*?)\2', replace, content or '')


def cssmin(code):
    return csscompressor.compress(code or '')


def jsmin(code):
    return rjsmin.jsmin(code or '')


def slugify(text):
    """Lowercase ASCII slug: 'Hello, World!' -> 'hello-world'."""
    text = unicodedata.normalize('NFKD', str(text or '')).encode('ascii', 'ignore').decode('ascii')
    text = re.sub(r'[^\w\s-]', ' ', text.lower()).replace('_', ' ')
    return re.sub(r'[\s-]+', '-', text).strip('-')


FILTERS = {
    'getReadingTime': reading_time,
    'reading_time': reading_time,
    'htmlDateString': html_date_string,
    'html_date_string': html_date_string,
    'dateToRfc3339': date_to_rfc3339,
    'dateToRfc822': date_to_rfc822,
    'getNewestCollectionItemDate': newest_collection_item_date,
    'absoluteUrl': absolute_url,
    'htmlToAbsoluteUrls': html_to_absolute_urls,
    'cssmin': cssmin,
    'jsmin': jsmin,
    'slugify': slugify,
}
