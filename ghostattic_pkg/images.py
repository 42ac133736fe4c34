"""
Responsive image shortcode: resizes a source image into several widths and
formats with Pillow and returns the matching <picture> markup.
"""

import io
import os
import hashlib
import logging
from html import escape
from typing import Dict, List, Optional, Sequence

from markupsafe import Markup
from PIL import Image

from .filters import slugify
from .remote import RemoteFetcher

logger = logging.getLogger('Ghostattic.images')

PIL_FORMATS = {'webp': 'WEBP', 'jpeg': 'JPEG', 'png': 'PNG'}
MIME_TYPES = {'webp': 'image/webp', 'jpeg': 'image/jpeg', 'png': 'image/png'}


class ImageShortcode:
    """
    Callable registered as the ``image`` template global.

    Usage in a template::

        {{ image(post.feature_image, "post__image", post.title, "(min-width: 40em) 50vw, 100vw", [300, 600, 1200]) }}
    """

    def __init__(self, output_dir: str = os.path.join('dist', 'img'), url_path: str = '/img/',
                 formats: Sequence[str] = ('webp', 'jpeg'), fetcher: Optional[RemoteFetcher] = None,
                 source_dir: Optional[str] = None, cache_dir: str = '.cache'):
        self.output_dir = output_dir
        self.url_path = url_path if url_path.endswith('/') else url_path + '/'
        self.formats = list(formats)
        self.fetcher = fetcher or RemoteFetcher(cache_dir=cache_dir)
        self.source_dir = source_dir
        self.images_generated = 0

    def __call__(self, src, cls=None, alt=None, sizes=None, widths=None) -> Markup:
        if alt is None:
            # alt="" is fine for decorative images; a missing alt is not
            raise ValueError(f"Missing `alt` attribute on image shortcode for: {src}")
        if not src:
            raise ValueError("Missing `src` on image shortcode")
        widths = list(widths) if widths else [None]
        if len(widths) > 1 and not sizes:
            raise ValueError(f"Missing `sizes` attribute on image shortcode for: {src}")

        if src.startswith('//www.gravatar.com/'):
            src = f'https:{src}'

        metadata = self.generate(src, alt, widths)
        return Markup(self.generate_html(metadata, cls=cls, alt=alt, sizes=sizes))

    def load_source(self, src: str) -> bytes:
        if src.startswith(('http://', 'https://')):
            return self.fetcher.fetch(src)
        path = src.lstrip('/') if self.source_dir else src
        if self.source_dir:
            path = os.path.join(self.source_dir, path)
        with open(path, 'rb') as f:
            return f.read()

    def file_stem(self, src: str, alt: str) -> str:
        return slugify(alt) or hashlib.md5(src.encode('utf-8')).hexdigest()[:10]

    def generate(self, src: str, alt: str, widths: List[Optional[int]]) -> Dict[str, List[Dict]]:
        """Write every width/format variant and return their stats per format."""
        data = self.load_source(src)
        stem = self.file_stem(src, alt)
        os.makedirs(self.output_dir, exist_ok=True)

        with Image.open(io.BytesIO(data)) as source:
            source.load()
            original_width, original_height = source.size

            targets = sorted({width for width in widths if width and width <= original_width})
            if not targets:
                targets = [original_width]

            metadata = {}
            for image_format in self.formats:
                stats = []
                for width in targets:
                    height = max(1, round(original_height * width / original_width))
                    filename = f'{stem}-{width}.{image_format}'
                    output_path = os.path.join(self.output_dir, filename)
                    if not os.path.exists(output_path):
                        self._write_variant(source, width, height, image_format, output_path)
                    url = self.url_path + filename
                    stats.append({
                        'format': image_format,
                        'width': width,
                        'height': height,
                        'filename': filename,
                        'output_path': output_path,
                        'url': url,
                        'srcset': f'{url} {width}w',
                    })
                metadata[image_format] = stats
        return metadata

    def _write_variant(self, source, width, height, image_format, output_path):
        resized = source.resize((width, height), Image.LANCZOS)
        if image_format == 'jpeg' and resized.mode not in ('RGB', 'L'):
            resized = resized.convert('RGB')
        resized.save(output_path, PIL_FORMATS[image_format])
        self.images_generated += 1
        logger.debug(f"Generated image {output_path}")

    def generate_html(self, metadata: Dict[str, List[Dict]], cls=None, alt='', sizes=None) -> str:
        fallback_format = 'jpeg' if 'jpeg' in metadata else self.formats[-1]
        fallback = metadata[fallback_format]
        smallest, largest = fallback[0], fallback[-1]

        sources = []
        for image_format, stats in metadata.items():
            if image_format == fallback_format:
                continue
            attrs = [f'type="{MIME_TYPES[image_format]}"',
                     f'srcset="{", ".join(entry["srcset"] for entry in stats)}"']
            if sizes:
                attrs.append(f'sizes="{escape(sizes)}"')
            sources.append(f'<source {" ".join(attrs)}>')

        img_attrs = []
        if cls:
            img_attrs.append(f'class="{escape(cls)}"')
        img_attrs.append(f'alt="{escape(alt, quote=True)}"')
        img_attrs.append(f'src="{smallest["url"]}"')
        img_attrs.append(f'width="{largest["width"]}"')
        img_attrs.append(f'height="{largest["height"]}"')
        if len(fallback) > 1:
            img_attrs.append(f'srcset="{", ".join(entry["srcset"] for entry in fallback)}"')
        if sizes:
            img_attrs.append(f'sizes="{escape(sizes)}"')
        img_attrs.append('loading="lazy"')
        img_attrs.append('decoding="async"')

        return f'<picture>{"".join(sources)}<img {" ".join(img_attrs)}></picture>'
