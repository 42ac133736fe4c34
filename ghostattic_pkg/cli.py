#!/usr/bin/env python3
"""
Command-line interface for Ghostattic - static sites from a Ghost CMS.
"""

import os
import sys
import argparse
from typing import Dict

from . import __version__
from .cache import CacheWrapper
from .content_api import GhostContentAPI
from .core import Ghostattic
from .data_sources import GhostDataSources
from .server import serve
from .settings import GhostatticSettings

STARTER_FILES: Dict[str, str] = {
    '_includes/base.html': """<!DOCTYPE html>
<html lang="{{ site.lang or 'en' }}">
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <title>{% if title %}{{ title }} | {% endif %}{{ site.title }}</title>
    <meta name="description" content="{{ site.description }}">
    <link rel="alternate" type="application/rss+xml" href="/feed.xml">
</head>
<body>
    <header><a href="/">{{ site.title }}</a></header>
    <main>{{ content }}</main>
    <footer>
        {% for footer in collections.footers %}<a href="{{ footer.url }}">{{ footer.title }}</a>{% endfor %}
    </footer>
</body>
</html>
""",
    'index.html': """---
layout: base.html
---
{% for post in collections.posts %}
<article>
    {% if post.feature_image %}{{ image(post.feature_image, "post__image", post.title, "(min-width: 40em) 50vw, 100vw", [300, 600]) }}{% endif %}
    <h2><a href="{{ post.url }}">{{ post.title }}</a></h2>
    <time datetime="{{ post.published_at | htmlDateString }}">{{ post.published_at.strftime('%B %d, %Y') }}</time>
    <p>{{ post.excerpt }}</p>
</article>
{% endfor %}
""",
    'post.html': """---
layout: base.html
pagination:
  data: collections.posts
  size: 1
  alias: post
permalink: "{{ post.url }}"
---
<article>
    <h1>{{ post.title }}</h1>
    <p>By <a href="{{ post.primary_author.url }}">{{ post.primary_author.name }}</a>
       &middot; {{ post.html | striptags | getReadingTime }} min read</p>
    {{ post.html }}
</article>
""",
    'author.html': """---
layout: base.html
pagination:
  data: collections.authors
  size: 1
  alias: author
permalink: "{{ author.url }}"
---
<h1>{{ author.name }}</h1>
<ul>{% for post in author.posts or [] %}<li><a href="{{ post.url }}">{{ post.title }}</a></li>{% endfor %}</ul>
""",
    'tag.html': """---
layout: base.html
pagination:
  data: collections.tags
  size: 1
  alias: tag
permalink: "{{ tag.url }}"
---
<h1>{{ tag.name }}</h1>
<ul>{% for post in tag.posts or [] %}<li><a href="{{ post.url }}">{{ post.title }}</a></li>{% endfor %}</ul>
""",
    'feed.xml': """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
    <title>{{ site.title }}</title>
    <link href="{{ site.url }}"/>
    {% set updated = collections.posts | getNewestCollectionItemDate %}
    {% if updated %}<updated>{{ updated | dateToRfc3339 }}</updated>{% endif %}
    {% for post in collections.posts %}
    <entry>
        <title>{{ post.title }}</title>
        <link href="{{ post.url | absoluteUrl(site.url) }}"/>
        <updated>{{ post.published_at | dateToRfc3339 }}</updated>
        <id>{{ post.url | absoluteUrl(site.url) }}</id>
        <content type="html">{{ post.html | htmlToAbsoluteUrls(site.url) | e }}</content>
    </entry>
    {% endfor %}
</feed>
""",
    '404.html': """---
layout: base.html
title: Page not found
---
<h1>Page not found</h1>
<p><a href="/">Back to the homepage</a></p>
""",
}

ENV_EXAMPLE = """GHOST_API_URL=https://cms.example.com
GHOST_CONTENT_API_KEY=0123456789abcdef0123456789
# SITE_URL=https://www.example.com
"""


def create_starter_structure(input_dir: str) -> None:
    """Create starter templates and an example .env file."""
    for rel_path, content in STARTER_FILES.items():
        path = os.path.join(input_dir, rel_path)
        if os.path.exists(path):
            print(f"Template already exists: {path}")
            continue
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(content)
        print(f"Created template: {path}")

    env_example = os.path.join(os.getcwd(), '.env.example')
    if os.path.exists(env_example):
        print("Example environment already exists: .env.example")
    else:
        with open(env_example, 'w', encoding='utf-8') as f:
            f.write(ENV_EXAMPLE)
        print("Created example environment: .env.example")


def build_site(settings: Dict) -> Ghostattic:
    """Build the site described by ``settings`` and return the generator."""
    api = GhostContentAPI.from_settings(settings)
    cache = CacheWrapper(directory=settings['cache_dir'])
    data_sources = GhostDataSources(api, cache=cache, site_url=settings.get('site_url'))
    generator = Ghostattic(
        input_dir=settings['input'],
        output_dir=settings['output'],
        data_sources=data_sources,
        site_url=settings.get('site_url'),
        cache_dir=settings['cache_dir'],
        image_url_path=settings['image_url_path'],
        minify=settings['minify'],
        external_links=settings['external_links'],
        workers=settings['workers'],
    )
    try:
        generator.build()
    finally:
        api.close()
    return generator


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(description='Ghostattic - static sites from a Ghost CMS')
    parser.add_argument('--input', type=str, help='Directory holding templates and static files')
    parser.add_argument('--output', type=str, help='Output directory for the generated site')
    parser.add_argument('--cache-dir', dest='cache_dir', type=str,
                        help='Directory for cached API responses and remote images')
    parser.add_argument('--no-minify', dest='minify', action='store_false', default=None,
                        help='Skip HTML minification')
    parser.add_argument('--workers', type=int, help='Number of collections loaded in parallel')
    parser.add_argument('--serve', action='store_true', help='Preview the site after building')
    parser.add_argument('--port', type=int, help='Port for --serve')
    parser.add_argument('--init', type=str, choices=['yml', 'yaml', 'json'],
                        help='Create a sample configuration file and starter templates')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    args = parser.parse_args()
    settings_loader = GhostatticSettings()

    if args.init:
        config_path = settings_loader.create_sample_config(args.init)
        print(f"Created sample configuration file: {config_path}")
        create_starter_structure(settings_loader.DEFAULT_SETTINGS['input'])
        print("\nSet GHOST_API_URL and GHOST_CONTENT_API_KEY, then run 'ghostattic' to build your site.")
        return

    try:
        settings_loader.load_settings()
        args_dict = {k: v for k, v in vars(args).items() if v is not None and k not in ('serve', 'init')}
        final_settings = settings_loader.merge_with_args(args_dict)

        generator = build_site(final_settings)
        if args.serve:
            serve(generator.output_dir, final_settings['port'])
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
