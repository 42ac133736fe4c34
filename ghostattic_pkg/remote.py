"""
Validation and cached downloading of remote image sources (feature images,
author avatars) referenced by Ghost content.
"""

import re
import time
import socket
import logging
import ipaddress
from typing import Callable, List, Optional, Set, Tuple
from urllib.parse import urlparse

import requests

from .cache import AssetCache

logger = logging.getLogger('Ghostattic.remote')

REMOTE_IMAGE_LIFETIME = '30d'


class RemoteSourceValidator:
    """
    Reject remote URLs that could make a build reach into the local network.
    """

    ALLOWED_SCHEMES: Set[str] = {'http', 'https'}

    BLOCKED_HOSTNAMES: Set[str] = {
        'localhost',
        'localhost.localdomain',
        'ip6-localhost',
        'ip6-loopback',
        'metadata.google.internal',
    }

    SUSPICIOUS_PATTERNS: List[str] = [
        r'%2e%2e%2f',
        r'\.\./',
        r'%2f%2f',
        r'%5c%5c',
    ]

    def __init__(self, resolve_hosts: bool = True):
        self.resolve_hosts = resolve_hosts

    def validate(self, url: str) -> Tuple[bool, str]:
        """
        Check that ``url`` is safe to download.

        Returns:
            Tuple of (is_valid, reason)
        """
        parsed = urlparse(url)
        if parsed.scheme.lower() not in self.ALLOWED_SCHEMES:
            return False, f"Unsupported URL scheme: {parsed.scheme or '(none)'}"
        if not parsed.hostname:
            return False, "Missing hostname"
        if '@' in parsed.netloc:
            return False, "Credentials are not allowed in image URLs"

        hostname = parsed.hostname.lower()
        if hostname in self.BLOCKED_HOSTNAMES:
            return False, f"Blocked hostname: {hostname}"

        url_lower = url.lower()
        for pattern in self.SUSPICIOUS_PATTERNS:
            if re.search(pattern, url_lower):
                return False, "URL contains suspicious patterns"

        try:
            addresses = [hostname] if self._is_ip_literal(hostname) else self._resolve(hostname)
        except socket.gaierror:
            return False, f"Cannot resolve hostname: {hostname}"

        for address in addresses:
            if not self.is_public_address(address):
                return False, f"Blocked IP address: {address}"

        return True, "URL is valid"

    @staticmethod
    def _is_ip_literal(hostname: str) -> bool:
        try:
            ipaddress.ip_address(hostname)
            return True
        except ValueError:
            return False

    def _resolve(self, hostname: str) -> List[str]:
        if not self.resolve_hosts:
            return []
        info = socket.getaddrinfo(hostname, None, type=socket.SOCK_STREAM)
        return sorted({entry[4][0] for entry in info})

    @staticmethod
    def is_public_address(address: str) -> bool:
        try:
            ip = ipaddress.ip_address(address.split('%', 1)[0])
        except ValueError:
            return False
        if getattr(ip, 'ipv4_mapped', None):
            ip = ip.ipv4_mapped
        return not (ip.is_private or ip.is_loopback or ip.is_link_local or ip.is_multicast
                    or ip.is_reserved or ip.is_unspecified)


class RemoteFetcher:
    """
    Download remote files through a validator and keep them in the asset
    cache, so repeated builds only hit the network once per lifetime.
    """

    def __init__(self, cache_dir: str = '.cache', session: Optional[requests.Session] = None,
                 validator: Optional[RemoteSourceValidator] = None, duration: str = REMOTE_IMAGE_LIFETIME,
                 timeout: int = 30, clock: Callable[[], float] = time.time):
        self.cache_dir = cache_dir
        self.clock = clock
        self.session = session or requests.Session()
        self.validator = validator or RemoteSourceValidator()
        self.duration = duration
        self.timeout = timeout

    def fetch(self, url: str) -> bytes:
        """
        Return the body of ``url``, from cache when fresh.

        A failed download falls back to a stale cached copy; with nothing
        cached the error is raised.
        """
        asset = AssetCache(f'remote_{url}', directory=self.cache_dir, clock=self.clock)
        if asset.is_cache_valid(self.duration):
            return asset.get_cached_value()

        is_valid, reason = self.validator.validate(url)
        if not is_valid:
            raise ValueError(f"Refusing to fetch {url}: {reason}")

        try:
            response = self.session.get(url, timeout=self.timeout, allow_redirects=True)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            if asset.exists():
                logger.warning(f"Failed to download {url}, using cached copy: {e}")
                return asset.get_cached_value()
            raise

        asset.save(response.content, 'buffer')
        logger.debug(f"Downloaded remote file {url} ({len(response.content)} bytes)")
        return response.content
