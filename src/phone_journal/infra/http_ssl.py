"""
HTTPS SSL helpers.

Recording downloads go through urllib. Some local Python installs (notably
Homebrew Python on macOS) fail with CERTIFICATE_VERIFY_FAILED against the
default store, so we pin the certifi CA bundle.
"""

from __future__ import annotations

import ssl
from functools import lru_cache

import certifi


@lru_cache(maxsize=1)
def create_ssl_context() -> ssl.SSLContext:
    """
    Returns an SSLContext configured with the certifi CA bundle.
    """
    return ssl.create_default_context(cafile=certifi.where())
