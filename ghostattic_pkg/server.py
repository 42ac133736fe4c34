"""
Local preview server for the generated site.
"""

import os
import logging
from functools import partial
from http.server import ThreadingHTTPServer, SimpleHTTPRequestHandler

logger = logging.getLogger('Ghostattic.server')


class PreviewHandler(SimpleHTTPRequestHandler):
    """Serve the output directory; unknown paths get 404.html without a redirect."""

    def send_error(self, code, message=None, explain=None):
        not_found_page = os.path.join(self.directory, '404.html')
        if code != 404 or not os.path.isfile(not_found_page):
            super().send_error(code, message, explain)
            return

        with open(not_found_page, 'rb') as f:
            body = f.read()
        self.send_response(404, message)
        self.send_header('Content-Type', 'text/html; charset=utf-8')
        self.send_header('Content-Length', str(len(body)))
        self.end_headers()
        if self.command != 'HEAD':
            self.wfile.write(body)

    def log_message(self, format, *args):
        logger.debug("%s - %s" % (self.address_string(), format % args))


def create_server(output_dir, port=8080, host='127.0.0.1'):
    if not os.path.isdir(output_dir):
        raise FileNotFoundError(f"Output directory not found: {output_dir}. Build the site first.")
    handler = partial(PreviewHandler, directory=os.path.abspath(output_dir))
    return ThreadingHTTPServer((host, port), handler)


def serve(output_dir, port=8080, host='127.0.0.1'):
    """Serve ``output_dir`` until interrupted."""
    httpd = create_server(output_dir, port, host)
    logger.info(f"Serving {output_dir} at http://{host}:{httpd.server_address[1]}/")
    try:
        httpd.serve_forever()
    except KeyboardInterrupt:
        logger.info("Serving stopped")
    finally:
        httpd.server_close()
