"""
URL rewriting applied to each recorded URL before it is requested.
"""

from typing import List, Optional
from urllib.parse import SplitResult, unquote_plus, urlsplit, urlunsplit

from .models import InvalidURLError

CACHE_PARAM = "cache"
CACHE_BUST = f"{CACHE_PARAM}=false"


def _split_absolute(url: str) -> SplitResult:
    try:
        parts = urlsplit(url)
        parts.port  # raises ValueError on a malformed port
    except ValueError as e:
        raise InvalidURLError(url, str(e)) from None
    if not parts.scheme or not parts.hostname:
        raise InvalidURLError(url)
    return parts


def rewrite_host(url: str, host: str) -> str:
    """Replace host[:port] of an absolute URL, keeping scheme, userinfo, path and query."""
    parts = _split_absolute(url)
    userinfo, sep, _ = parts.netloc.rpartition("@")
    netloc = f"{userinfo}{sep}{host}"
    return urlunsplit(parts._replace(netloc=netloc))


def add_cache_bust(url: str) -> str:
    """Set `cache=false` in the query string, in place if the parameter already exists."""
    parts = _split_absolute(url)
    params: List[str] = []
    replaced = False
    for param in parts.query.split("&") if parts.query else []:
        name = unquote_plus(param.split("=", 1)[0])
        if name == CACHE_PARAM:
            if not replaced:
                params.append(CACHE_BUST)
                replaced = True
            continue
        params.append(param)
    if not replaced:
        params.append(CACHE_BUST)
    return urlunsplit(parts._replace(query="&".join(params)))


def transform_url(url: str, host: Optional[str] = None, no_cache: bool = False) -> str:
    """
    Apply the configured rewrites to a recorded URL.

    Raises InvalidURLError if the URL is not absolute, even when no rewrite
    is configured.
    """
    _split_absolute(url)
    if host:
        url = rewrite_host(url, host)
    if no_cache:
        url = add_cache_bust(url)
    return url
