from __future__ import annotations

from functools import lru_cache
from http.cookiejar import Cookie, CookieJar, DefaultCookiePolicy
from urllib.parse import urlsplit
from urllib.request import Request

import tldextract

# Bundled list snapshot only: no network fetch, no disk cache.
_extract = tldextract.TLDExtract(
    cache_dir=None,
    suffix_list_urls=(),
    fallback_to_snapshot=True,
    include_psl_private_domains=True,
)


@lru_cache(maxsize=1024)
def is_public_suffix(domain: str) -> bool:
    domain = domain.strip(".").lower()
    if not domain:
        return False
    parts = _extract(domain)
    return bool(parts.suffix) and not parts.domain and not parts.subdomain


def _crosses_public_suffix(cookie: Cookie, request: Request) -> bool:
    if not cookie.domain_specified:
        return False
    domain = cookie.domain.lstrip(".").lower()
    host = (urlsplit(request.get_full_url()).hostname or "").lower()
    return domain != host and is_public_suffix(domain)


class PublicSuffixCookiePolicy(DefaultCookiePolicy):
    """Default cookie rules plus a public-suffix check on the Domain attribute.

    A cookie scoped to a public suffix such as ``com`` or ``github.io`` is
    neither stored nor sent, unless the suffix is the request host itself.
    """

    def set_ok_domain(self, cookie: Cookie, request: Request) -> bool:
        if _crosses_public_suffix(cookie, request):
            return False
        return super().set_ok_domain(cookie, request)

    def return_ok_domain(self, cookie: Cookie, request: Request) -> bool:
        if _crosses_public_suffix(cookie, request):
            return False
        return super().return_ok_domain(cookie, request)


def session_jar() -> CookieJar:
    return CookieJar(policy=PublicSuffixCookiePolicy())


def refusing_jar() -> CookieJar:
    return CookieJar(policy=DefaultCookiePolicy(allowed_domains=[]))
