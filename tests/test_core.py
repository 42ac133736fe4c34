"""Tests for the Ghostattic site builder."""

import pytest
import io
import os
from unittest.mock import Mock
from PIL import Image

import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from ghostattic_pkg.cache import CacheWrapper
from ghostattic_pkg.core import Ghostattic, split_front_matter, lookup
from ghostattic_pkg.data_sources import GhostDataSources

BASE_LAYOUT = """<!DOCTYPE html>
<html lang="{{ site.lang }}">
  <head><title>{{ title }} | {{ site.title }}</title></head>
  <body>
    {{ content }}
  </body>
</html>
"""

POST_TEMPLATE = """---
layout: base.html
pagination:
  data: collections.posts
  size: 1
  alias: post
permalink: "{{ post.url }}"
---
<h1>{{ post.title }}</h1><time>{{ post.published_at | htmlDateString }}</time>"""


def write_file(base, rel_path, content):
    path = os.path.join(base, rel_path)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    mode = 'wb' if isinstance(content, bytes) else 'w'
    with open(path, mode) as f:
        f.write(content)
    return path


def read_file(base, rel_path):
    with open(os.path.join(base, rel_path), 'r', encoding='utf-8') as f:
        return f.read()


@pytest.fixture
def site_dir(temp_dir, monkeypatch):
    """A small source tree in the layout the starter templates use."""
    monkeypatch.chdir(temp_dir)
    src = os.path.join(temp_dir, 'src')
    write_file(src, '_includes/base.html', BASE_LAYOUT)
    write_file(src, '_data/site.yml', 'title: Local Title\nlang: en\n')
    write_file(src, 'index.html', (
        '---\nlayout: base.html\ntitle: Home\n---\n'
        '{% for post in collections.posts %}<a href="{{ post.url }}">{{ post.title }}</a>{% endfor %}'
    ))
    write_file(src, 'post.html', POST_TEMPLATE)
    write_file(src, 'about.md', '---\ntitle: About\n---\n# About {{ site.title }}\n\nHello *world*.\n')
    write_file(src, '404.html', '<h1>Not found</h1>')
    write_file(src, 'css/main.css', 'body { color: red; }\n')
    write_file(src, 'favicon.ico', b'\x00\x01icon')
    write_file(src, '.hidden', 'skip me')
    return temp_dir


@pytest.fixture
def data_sources(mock_api, cache_dir, clock):
    return GhostDataSources(mock_api, cache=CacheWrapper(directory=cache_dir, clock=clock))


def make_builder(site_dir, data_sources=None, **kwargs):
    kwargs.setdefault('minify', False)
    return Ghostattic(
        input_dir=os.path.join(site_dir, 'src'),
        output_dir=os.path.join(site_dir, 'dist'),
        data_sources=data_sources,
        cache_dir=os.path.join(site_dir, '.cache'),
        fetcher=Mock(),
        **kwargs
    )


class TestFrontMatter:
    """Test cases for front matter parsing."""

    def test_split_front_matter(self):
        metadata, body = split_front_matter('---\ntitle: Hi\ntags: [a, b]\n---\n<p>Body</p>')
        assert metadata == {'title': 'Hi', 'tags': ['a', 'b']}
        assert body == '<p>Body</p>'

    def test_without_front_matter(self):
        assert split_front_matter('<p>Body</p>') == ({}, '<p>Body</p>')

    def test_front_matter_must_be_mapping(self):
        with pytest.raises(ValueError):
            split_front_matter('---\n- a\n- b\n---\nbody')

    def test_lookup(self):
        context = {'collections': {'posts': [1, 2]}}
        assert lookup(context, 'collections.posts') == [1, 2]
        assert lookup(context, 'collections.missing') is None


class TestGhostattic:
    """Test cases for the Ghostattic builder."""

    def test_missing_input_dir(self, temp_dir, monkeypatch):
        monkeypatch.chdir(temp_dir)
        with pytest.raises(FileNotFoundError, match="Input directory not found"):
            Ghostattic(input_dir=os.path.join(temp_dir, 'nope'), output_dir=os.path.join(temp_dir, 'dist'),
                       fetcher=Mock())

    def test_default_output_paths(self, site_dir):
        builder = make_builder(site_dir)
        assert builder.default_output_path('index.html') == 'index.html'
        assert builder.default_output_path('about.md') == os.path.join('about', 'index.html')
        assert builder.default_output_path('404.html') == '404.html'
        assert builder.default_output_path(os.path.join('css', 'main.css')) == os.path.join('css', 'main.css')

    def test_permalink_cannot_escape_output(self, site_dir):
        builder = make_builder(site_dir)
        with pytest.raises(ValueError):
            builder.output_path_for('../../etc/passwd')

    def test_build_with_ghost_collections(self, site_dir, data_sources):
        builder = make_builder(site_dir, data_sources)
        builder.build()

        index = read_file(site_dir, 'dist/index.html')
        assert '<title>Home | Example Blog</title>' in index
        assert '<html lang="en">' in index
        assert index.index('/first/') < index.index('/third/') < index.index('/second/')

        post = read_file(site_dir, 'dist/first/index.html')
        assert '<h1>First</h1><time>2023-01-03</time>' in post
        assert os.path.exists(os.path.join(site_dir, 'dist', 'second', 'index.html'))
        assert os.path.exists(os.path.join(site_dir, 'dist', 'third', 'index.html'))

    def test_markdown_page(self, site_dir):
        make_builder(site_dir).build()

        about = read_file(site_dir, 'dist/about/index.html')
        assert '<h1>About Local Title</h1>' in about
        assert '<em>world</em>' in about

    def test_passthrough_and_skipped_files(self, site_dir):
        builder = make_builder(site_dir)
        builder.build()

        with open(os.path.join(site_dir, 'dist', 'favicon.ico'), 'rb') as f:
            assert f.read() == b'\x00\x01icon'
        assert read_file(site_dir, 'dist/css/main.css') == 'body { color: red; }'
        assert read_file(site_dir, 'dist/404.html') == '<h1>Not found</h1>'
        assert not os.path.exists(os.path.join(site_dir, 'dist', '.hidden'))
        assert not os.path.exists(os.path.join(site_dir, 'dist', '_includes'))
        assert builder.files_copied == 1

    def test_site_url_fallback(self, site_dir):
        write_file(site_dir, 'src/url.txt', '{{ site.url }}')
        make_builder(site_dir, site_url='https://www.example.com/').build()
        assert read_file(site_dir, 'dist/url.txt') == 'https://www.example.com'

    def test_paginated_chunks(self, site_dir, data_sources):
        write_file(site_dir, 'src/blog.html', (
            '---\npagination:\n  data: collections.posts\n  size: 2\n---\n'
            '{{ pagination.page_number }}/{{ pagination.total_pages }}:'
            '{% for post in pagination.items %}{{ post.slug }},{% endfor %}'
        ))
        make_builder(site_dir, data_sources).build()

        assert read_file(site_dir, 'dist/blog/index.html') == '0/2:first,third,'
        assert read_file(site_dir, 'dist/blog/1/index.html') == '1/2:second,'

    def test_permalink_false_skips_output(self, site_dir):
        write_file(site_dir, 'src/draft.html', '---\npermalink: false\n---\nDraft')
        make_builder(site_dir).build()
        assert not os.path.exists(os.path.join(site_dir, 'dist', 'draft'))

    def test_template_syntax_error_does_not_stop_build(self, site_dir):
        write_file(site_dir, 'src/broken.html', '{% if %}')
        builder = make_builder(site_dir)
        builder.build()

        assert not os.path.exists(os.path.join(site_dir, 'dist', 'broken'))
        assert os.path.exists(os.path.join(site_dir, 'dist', 'index.html'))

    def test_minify_and_external_links(self, site_dir):
        write_file(site_dir, 'src/links.html', '<p>\n  <a href="https://other.org/">Other</a>\n</p>\n')
        make_builder(site_dir, minify=True, site_url='https://www.example.com').build()

        assert read_file(site_dir, 'dist/links/index.html') == (
            '<p><a href="https://other.org/" target="_blank" rel="noopener noreferrer">Other</a></p>'
        )
        assert read_file(site_dir, 'dist/css/main.css') == 'body { color: red; }'

    def test_image_shortcode_in_template(self, site_dir):
        img_bytes = io.BytesIO()
        Image.new('RGB', (640, 320), color='green').save(img_bytes, format='PNG')
        write_file(site_dir, 'src/images/hero.png', img_bytes.getvalue())
        write_file(site_dir, 'src/hero.html', '{{ image("/images/hero.png", "hero", "Hero shot", "100vw", [320, 640]) }}')

        builder = make_builder(site_dir)
        builder.build()

        html = read_file(site_dir, 'dist/hero/index.html')
        assert html.startswith('<picture>')
        assert 'src="/img/hero-shot-320.jpeg"' in html
        assert os.path.exists(os.path.join(site_dir, 'dist', 'img', 'hero-shot-640.webp'))
        assert builder.images_generated == 4

    def test_image_without_alt_fails_build(self, site_dir):
        write_file(site_dir, 'src/bad.html', '{{ image("/images/hero.png", "hero", none, "100vw", [320]) }}')
        with pytest.raises(ValueError, match="Missing `alt`"):
            make_builder(site_dir).build()
