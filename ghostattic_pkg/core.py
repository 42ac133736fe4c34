import os
import re
import shutil
import logging
import time
from datetime import datetime

import yaml
import mistune
from jinja2 import Environment, FileSystemLoader, TemplateNotFound, TemplateSyntaxError

from .filters import FILTERS
from .images import ImageShortcode
from .remote import RemoteFetcher
from .transforms import html_min_transform, external_links_transform

TEMPLATE_FORMATS = ('html', 'njk', 'md', 'txt', 'xml', 'css')
PAGE_FORMATS = ('html', 'njk', 'md')
FRONT_MATTER_RE = re.compile(r'\A---\s*\n(.*?)\n---\s*(?:\n|\Z)(.*)\Z', re.DOTALL)


class InfoFilter(logging.Filter):
    """Filter to allow only selected INFO messages to be shown in the console."""
    def filter(self, record):
        if record.levelno >= logging.WARNING:
            return True
        allowed_messages = [
            "Site build completed in",
            "Total pages written:",
            "Total files copied:",
            "Total images generated:",
            "Loading Ghost collections",
            "Serving",
        ]
        return any(msg in record.getMessage() for msg in allowed_messages)


def split_front_matter(content):
    """Return (metadata, body) for a template with optional YAML front matter."""
    match = FRONT_MATTER_RE.match(content)
    if not match:
        return {}, content
    metadata = yaml.safe_load(match.group(1)) or {}
    if not isinstance(metadata, dict):
        raise ValueError("Front matter must be a mapping")
    return metadata, match.group(2)


def lookup(context, dotted_path):
    """Resolve 'collections.posts' style paths against the render context."""
    value = context
    for part in dotted_path.split('.'):
        if isinstance(value, dict):
            value = value.get(part)
        else:
            value = getattr(value, part, None)
        if value is None:
            return None
    return value


class Ghostattic:
    def create_markdown_parser(self):
        """Create a Mistune markdown parser with a custom renderer."""
        class CustomRenderer(mistune.HTMLRenderer):
            def __init__(self):
                super().__init__(escape=False)
            def block_code(self, code, info=None):
                escaped_code = mistune.escape(code)
                return '<pre style="white-space: pre-wrap;"><code>{}</code></pre>'.format(escaped_code)
        return mistune.create_markdown(
            renderer=CustomRenderer(),
            plugins=['table', 'task_lists', 'strikethrough']
        )

    def __init__(self, input_dir='src', output_dir='dist', data_sources=None, site_url=None,
                 cache_dir='.cache', image_url_path='/img/', minify=True, external_links=True,
                 workers=4, fetcher=None):
        self.input_dir = input_dir
        self.output_dir = output_dir
        self.includes_dir = os.path.join(input_dir, '_includes')
        self.data_dir = os.path.join(input_dir, '_data')
        self.data_sources = data_sources
        self.site_url = site_url.rstrip('/') if site_url else None
        self.cache_dir = cache_dir
        self.minify = minify
        self.external_links = external_links
        self.workers = workers
        self.pages_written = 0
        self.files_copied = 0

        self.setup_logging()

        if not os.path.isdir(self.input_dir):
            raise FileNotFoundError(f"Input directory not found: {self.input_dir}")

        self.image_shortcode = ImageShortcode(
            output_dir=os.path.join(self.output_dir, 'img'),
            url_path=image_url_path,
            fetcher=fetcher or RemoteFetcher(cache_dir=cache_dir),
            source_dir=self.input_dir,
        )

        self.env = Environment(loader=FileSystemLoader([self.includes_dir, self.input_dir]))
        self.env.filters.update(FILTERS)
        self.env.globals['image'] = self.image_shortcode

        self.markdown_parser = self.create_markdown_parser()
        self.transforms = [html_min_transform] if self.minify else []
        if self.external_links:
            self.transforms.append(lambda content, path: external_links_transform(content, path, self.site_url))

    def setup_logging(self):
        """Set up logging configuration."""
        self.logger = logging.getLogger('Ghostattic')
        self.logger.setLevel(logging.DEBUG)

        if not self.logger.handlers:
            # Console handler with filter
            console_handler = logging.StreamHandler()
            console_handler.setLevel(logging.INFO)
            console_handler.addFilter(InfoFilter())
            console_handler.setFormatter(logging.Formatter('%(message)s'))
            self.logger.addHandler(console_handler)

            # File handler for all logs
            logs_dir = os.path.join(os.getcwd(), 'logs')
            os.makedirs(logs_dir, exist_ok=True)
            log_filename = datetime.now().strftime('ghostattic_%Y-%m-%d_%H-%M-%S.log')
            file_handler = logging.FileHandler(os.path.join(logs_dir, log_filename))
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
            self.logger.addHandler(file_handler)

    @property
    def images_generated(self):
        return self.image_shortcode.images_generated

    def load_global_data(self):
        """Load YAML/JSON files from _data; the file stem becomes the variable name."""
        data = {}
        if not os.path.isdir(self.data_dir):
            return data
        for file in sorted(os.listdir(self.data_dir)):
            name, ext = os.path.splitext(file)
            if ext.lower() not in ('.yml', '.yaml', '.json'):
                continue
            file_path = os.path.join(self.data_dir, file)
            try:
                with open(file_path, 'r', encoding='utf-8') as f:
                    # JSON is a subset of YAML
                    data[name] = yaml.safe_load(f)
            except yaml.YAMLError as e:
                self.logger.error(f"Invalid data file {file_path}: {e}")
        return data

    def build_context(self):
        context = self.load_global_data()
        collections = {}
        site = dict(context.get('site') or {})
        if self.data_sources is not None:
            self.logger.info("Loading Ghost collections")
            collections = self.data_sources.load_all(self.workers)
            site.update(self.data_sources.site())
        if self.site_url and not site.get('url'):
            site['url'] = self.site_url
        context['site'] = site
        context['collections'] = collections
        return context

    def iter_input_files(self):
        for root, dirs, files in os.walk(self.input_dir):
            dirs[:] = sorted(d for d in dirs if not d.startswith(('_', '.')))
            for file in sorted(files):
                if not file.startswith(('_', '.')):
                    yield os.path.join(root, file)

    def default_output_path(self, rel_path):
        """Map an input path to its output path, using pretty URLs for pages."""
        stem, ext = os.path.splitext(rel_path)
        ext = ext.lstrip('.').lower()
        if ext not in PAGE_FORMATS:
            return rel_path
        name = os.path.basename(stem)
        if name == 'index':
            return stem + '.html'
        if name == '404':
            return stem + '.html'
        return os.path.join(stem, 'index.html')

    def output_path_for(self, permalink):
        permalink = permalink.strip().lstrip('/')
        if not permalink or permalink.endswith('/'):
            permalink += 'index.html'
        output_path = os.path.normpath(os.path.join(self.output_dir, permalink))
        if not os.path.abspath(output_path).startswith(os.path.abspath(self.output_dir)):
            raise ValueError(f"Permalink escapes the output directory: {permalink}")
        return output_path

    def page_url(self, output_path):
        rel = os.path.relpath(output_path, self.output_dir).replace(os.sep, '/')
        if rel == 'index.html':
            return '/'
        if rel.endswith('/index.html'):
            return '/' + rel[:-len('index.html')]
        return '/' + rel

    def render_template_file(self, file_path, context):
        """Render one template, yielding (output_path, content) for each page it produces."""
        rel_path = os.path.relpath(file_path, self.input_dir)
        ext = os.path.splitext(file_path)[1].lstrip('.').lower()
        with open(file_path, 'r', encoding='utf-8') as f:
            metadata, body = split_front_matter(f.read())

        pagination = metadata.get('pagination')
        if pagination:
            items = lookup(context, pagination.get('data', '')) or []
            size = max(1, int(pagination.get('size', 1)))
            chunks = [items[i:i + size] for i in range(0, len(items), size)]
        else:
            chunks = [None]

        body_template = self.env.from_string(body)
        for page_number, chunk in enumerate(chunks):
            page_context = dict(context)
            page_context.update(metadata)
            if chunk is not None:
                page_context['pagination'] = {
                    'items': chunk,
                    'page_number': page_number,
                    'size': len(chunk),
                    'total_pages': len(chunks),
                }
                alias = pagination.get('alias')
                if alias:
                    page_context[alias] = chunk[0] if pagination.get('size', 1) == 1 and chunk else chunk

            permalink = metadata.get('permalink')
            if permalink is False:
                continue
            if permalink:
                output_path = self.output_path_for(self.env.from_string(str(permalink)).render(page_context))
            elif chunk is not None and page_number > 0:
                stem = os.path.splitext(self.default_output_path(rel_path))[0]
                output_path = self.output_path_for(os.path.join(os.path.dirname(stem), str(page_number)) + '/')
            else:
                output_path = os.path.join(self.output_dir, self.default_output_path(rel_path))

            page_context['page'] = {
                'url': self.page_url(output_path),
                'input_path': file_path,
                'output_path': output_path,
                'file_slug': os.path.splitext(os.path.basename(file_path))[0],
            }

            content = body_template.render(page_context)
            if ext == 'md':
                content = self.markdown_parser(content)
            layout = metadata.get('layout')
            if layout:
                content = self.env.get_template(layout).render(page_context, content=content)

            yield output_path, content

    def write_output(self, output_path, content):
        for transform in self.transforms:
            content = transform(content, output_path)
        os.makedirs(os.path.dirname(output_path), exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(content)
        self.pages_written += 1
        self.logger.debug(f"Wrote {output_path}")

    def copy_passthrough(self, file_path):
        dest = os.path.join(self.output_dir, os.path.relpath(file_path, self.input_dir))
        try:
            os.makedirs(os.path.dirname(dest), exist_ok=True)
            shutil.copy2(file_path, dest)
            self.files_copied += 1
        except (IOError, OSError) as e:
            self.logger.error(f"Failed to copy {file_path}: {e}")

    def build(self):
        """Main build process."""
        start_time = time.time()
        os.makedirs(self.output_dir, exist_ok=True)
        context = self.build_context()

        for file_path in self.iter_input_files():
            ext = os.path.splitext(file_path)[1].lstrip('.').lower()
            if ext not in TEMPLATE_FORMATS:
                self.copy_passthrough(file_path)
                continue
            try:
                for output_path, content in self.render_template_file(file_path, context):
                    self.write_output(output_path, content)
            except (TemplateNotFound, TemplateSyntaxError) as e:
                self.logger.error(f"Template error in {file_path}: {e}")

        self.logger.info(f"Site build completed in {time.time() - start_time:.6f} seconds.")
        self.logger.info(f"Total pages written: {self.pages_written}")
        self.logger.info(f"Total files copied: {self.files_copied}")
        self.logger.info(f"Total images generated: {self.images_generated}")
