"""
Client for the Ghost Content API.

Only the read-only browse/read endpoints used to build a site are covered.
"""

import re
import logging
import threading
from typing import Any, Dict, List, Optional, Union

import requests

logger = logging.getLogger('Ghostattic.api')

USER_AGENT = 'Ghostattic/1.0.0 (Static Site Generator)'
LEGACY_VERSIONS = ('v2', 'v3', 'v4')
BROWSE_PARAMS = ('include', 'fields', 'formats', 'filter', 'limit', 'page', 'order')


class GhostAPIError(Exception):
    """Raised when the Content API answers with an error status."""

    def __init__(self, message: str, status: Optional[int] = None, error_type: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.error_type = error_type


class Resource:
    """One Content API resource kind, e.g. ``posts`` or ``settings``."""

    def __init__(self, api: 'GhostContentAPI', name: str, readable: bool = True):
        self.api = api
        self.name = name
        self.readable = readable

    def browse(self, options: Optional[Dict[str, Any]] = None, **params) -> Union[List[Dict], Dict]:
        """Fetch a collection (or the settings record)."""
        query = dict(options or {})
        query.update(params)
        data = self.api.request(f'{self.name}/', query)
        return data.get(self.name, [] if self.readable else {})

    def read(self, data: Dict[str, Any], options: Optional[Dict[str, Any]] = None, **params) -> Dict:
        """Fetch a single record by ``id`` or ``slug``."""
        if not self.readable:
            raise AttributeError(f"Resource '{self.name}' does not support read")
        if not data or not (data.get('id') or data.get('slug')):
            raise ValueError(f"{self.name}.read requires an id or slug")

        query = dict(options or {})
        query.update(params)
        if data.get('id'):
            path = f"{self.name}/{data['id']}/"
        else:
            path = f"{self.name}/slug/{data['slug']}/"

        records = self.api.request(path, query).get(self.name) or []
        if not records:
            raise GhostAPIError(f"{self.name} not found", status=404, error_type='NotFoundError')
        return records[0]


class GhostContentAPI:
    """
    Thin wrapper over ``requests`` for the Ghost Content API.

    Args:
        url: Base URL of the Ghost install, e.g. https://cms.example.com
        key: 26 character Content API key
        version: API version; v2-v4 are addressed by path, anything newer
            through the Accept-Version header
        session: Optional requests session, shared by every thread. Without
            one each thread gets its own session, since collections are
            loaded from a thread pool
        timeout: Request timeout in seconds
    """

    def __init__(self, url: str, key: str, version: str = 'v4',
                 session: Optional[requests.Session] = None, timeout: int = 30):
        if not url:
            raise ValueError("Config Missing: 'url' is required. E.g. 'https://site.com'")
        if not key:
            raise ValueError("Config Missing: 'key' is required.")
        if not re.fullmatch(r'[0-9a-f]{26}', key):
            raise ValueError("Config Invalid: 'key' must be 26 hex characters.")
        url = url.rstrip('/')
        if url.endswith('/ghost'):
            raise ValueError("Config Invalid: 'url' should not end in /ghost")

        self.url = url
        self.key = key
        self.version = version
        self.timeout = timeout
        self._shared_session = session
        if session is not None:
            session.headers.setdefault('User-Agent', USER_AGENT)
        self._local = threading.local()
        self._sessions: List[requests.Session] = []
        self._sessions_lock = threading.Lock()

        self.authors = Resource(self, 'authors')
        self.tags = Resource(self, 'tags')
        self.posts = Resource(self, 'posts')
        self.pages = Resource(self, 'pages')
        self.settings = Resource(self, 'settings', readable=False)

    @classmethod
    def from_settings(cls, settings: Dict[str, Any], session: Optional[requests.Session] = None) -> 'GhostContentAPI':
        return cls(
            url=settings.get('ghost_api_url'),
            key=settings.get('ghost_content_api_key'),
            version=settings.get('ghost_api_version') or 'v4',
            session=session,
            timeout=settings.get('request_timeout') or 30,
        )

    @property
    def endpoint(self) -> str:
        if self.version in LEGACY_VERSIONS:
            return f'{self.url}/ghost/api/{self.version}/content/'
        return f'{self.url}/ghost/api/content/'

    def build_params(self, query: Dict[str, Any]) -> Dict[str, str]:
        params = {'key': self.key}
        for name, value in query.items():
            if value is None:
                continue
            if name not in BROWSE_PARAMS:
                logger.debug(f"Passing unrecognised query parameter '{name}' to the Content API")
            if isinstance(value, (list, tuple)):
                value = ','.join(str(v) for v in value)
            params[name] = str(value)
        return params

    def request(self, path: str, query: Dict[str, Any]) -> Dict[str, Any]:
        """GET ``path`` below the content endpoint and return the decoded body."""
        url = self.endpoint + path
        headers = {'Accept': 'application/json'}
        if self.version not in LEGACY_VERSIONS:
            headers['Accept-Version'] = self.version

        logger.debug(f"GET {url} {sorted(k for k in query if query[k] is not None)}")
        response = self.session.get(url, params=self.build_params(query), headers=headers, timeout=self.timeout)

        if response.status_code >= 400:
            message = f"HTTP {response.status_code} from {url}"
            error_type = None
            try:
                errors = response.json().get('errors') or []
                if errors:
                    message = errors[0].get('message') or message
                    error_type = errors[0].get('type')
            except ValueError:
                logger.debug(f"Error response from {url} has no JSON body")
            raise GhostAPIError(message, status=response.status_code, error_type=error_type)

        try:
            return response.json()
        except ValueError as e:
            raise GhostAPIError(f"Invalid JSON from {url}: {e}", status=response.status_code)

    @property
    def session(self) -> requests.Session:
        if self._shared_session is not None:
            return self._shared_session
        session = getattr(self._local, 'session', None)
        if session is None:
            session = requests.Session()
            session.headers['User-Agent'] = USER_AGENT
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    def close(self) -> None:
        if self._shared_session is not None:
            self._shared_session.close()
            return
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
        self._local = threading.local()
