"""
Output transforms run on every generated HTML file.
"""

import re
from urllib.parse import urlparse

import csscompressor
import rjsmin

PRESERVED_TAGS = ('pre', 'textarea')
PLACEHOLDER = '<\x00{}\x00>'

# Whitespace between two of these is rendered, so it is collapsed to one space
INLINE_TAGS = frozenset((
    'a', 'abbr', 'acronym', 'b', 'bdi', 'bdo', 'big', 'button', 'cite', 'code', 'del', 'dfn',
    'em', 'font', 'i', 'img', 'input', 'ins', 'kbd', 'label', 'mark', 'math', 'nobr', 'object',
    'picture', 'q', 'rp', 'rt', 'rtc', 'ruby', 's', 'samp', 'select', 'small', 'span', 'strike',
    'strong', 'sub', 'sup', 'svg', 'time', 'tt', 'u', 'var',
))
TAG_NAME_RE = re.compile(r'</?([a-zA-Z][\w-]*)')


def _stash(pattern, content, stash, convert=None):
    def replace(match):
        block = convert(match) if convert else match.group(0)
        stash.append(block)
        return PLACEHOLDER.format(len(stash) - 1)
    return re.sub(pattern, replace, content, flags=re.IGNORECASE | re.DOTALL)


def _minify_style(match):
    open_tag, css, close_tag = match.groups()
    return open_tag + csscompressor.compress(css) + close_tag


def _minify_script(match):
    open_tag, js, close_tag = match.groups()
    # Leave JSON-LD and templates alone; only plain scripts are minified
    type_match = re.search(r'type=["\']?([^"\'\s>]+)', open_tag, re.IGNORECASE)
    if type_match and type_match.group(1).lower() not in ('text/javascript', 'module'):
        return match.group(0)
    return open_tag + rjsmin.jsmin(js) + close_tag


def _is_inline(tag):
    match = TAG_NAME_RE.match(tag)
    return bool(match) and match.group(1).lower() in INLINE_TAGS


def _collapse_between_tags(match):
    previous_tag, next_tag = match.group(1), match.group(2)
    if _is_inline(previous_tag) and _is_inline(next_tag):
        return previous_tag + ' '
    return previous_tag


def minify_html(content):
    """Remove comments and collapse whitespace, leaving <pre> and <textarea> untouched."""
    stash = []
    for tag in PRESERVED_TAGS:
        content = _stash(rf'<{tag}\b.*?</{tag}>', content, stash)
    content = _stash(r'(<style\b[^>]*>)(.*?)(</style>)', content, stash, _minify_style)
    content = _stash(r'(<script\b[^>]*>)(.*?)(</script>)', content, stash, _minify_script)

    content = re.sub(r'<!--(?!\[if).*?-->', '', content, flags=re.DOTALL)
    content = re.sub(r'<!DOCTYPE[^>]*>', '<!doctype html>', content, count=1, flags=re.IGNORECASE)
    content = re.sub(r'(<[^<>]*>)\s+(?=(<[^<>]*>))', _collapse_between_tags, content)
    content = re.sub(r'\s+', ' ', content).strip()

    for index, block in enumerate(stash):
        content = content.replace(PLACEHOLDER.format(index), block, 1)
    return content


def html_min_transform(content, output_path):
    if output_path and output_path.endswith('.html'):
        return minify_html(content)
    return content


def is_external(href, site_url=None):
    parsed = urlparse(href)
    if parsed.scheme not in ('http', 'https'):
        return False
    if site_url and parsed.netloc == urlparse(site_url).netloc:
        return False
    return True


def _add_attribute(tag, attribute):
    end = '/>' if tag.endswith('/>') else '>'
    return f'{tag[:-len(end)].rstrip()} {attribute}{end}'


def external_links_transform(content, output_path, site_url=None):
    """Open links to other sites in a new tab, without leaking the opener."""
    if not output_path or not output_path.endswith('.html'):
        return content

    def replace(match):
        tag = match.group(0)
        href = re.search(r'\bhref=(["\'])(.*?)\1', tag, re.IGNORECASE)
        if not href or not is_external(href.group(2), site_url):
            return tag
        if not re.search(r'\btarget=', tag, re.IGNORECASE):
            tag = _add_attribute(tag, 'target="_blank"')
        if not re.search(r'\brel=', tag, re.IGNORECASE):
            tag = _add_attribute(tag, 'rel="noopener noreferrer"')
        return tag

    return re.sub(r'<a\b[^>]*>', replace, content, flags=re.IGNORECASE)
