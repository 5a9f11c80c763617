"""URL redaction for log lines.

Extracted URLs are whatever the user has open, so they routinely carry
session tokens, signed-URL signatures or OAuth fragments. Log them through
`redact_url`; the returned value is for logs only, never for callers.
"""

from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

REDACTED = "<redacted>"

# Substrings of query keys that carry credentials in URLs
# (access_token, X-Amz-Signature, sessionid, api_key, ...).
_CREDENTIAL_PARTS = ("token", "secret", "password", "session", "signature", "apikey", "api_key", "api-key")

# Short keys that are only credentials when they are the whole key;
# "author" or "keyword" must survive.
_CREDENTIAL_KEYS = frozenset({"auth", "code", "key", "sig", "pass", "pwd"})


def is_credential_param(key: str) -> bool:
    k = (key or "").strip().lower()
    return bool(k) and (k in _CREDENTIAL_KEYS or any(part in k for part in _CREDENTIAL_PARTS))


def _scrub(params: str) -> str | None:
    """Redacted copy of a query string, or None when nothing matched."""
    pairs = parse_qsl(params, keep_blank_values=True)
    hits = [i for i, (k, v) in enumerate(pairs) if v and is_credential_param(k)]
    if not hits:
        return None
    for i in hits:
        pairs[i] = (pairs[i][0], REDACTED)
    return urlencode(pairs)


def redact_url(url: str) -> str:
    """Drop userinfo and redact credential-looking query/fragment values.

    Ordinary parameters (`q=`, filters, paging) are kept, and a URL that needs
    no change is returned as-is so logs stay comparable with the page.
    """
    if not url:
        return url
    try:
        parts = urlsplit(url)
    except ValueError:
        return url

    netloc = parts.netloc.rpartition("@")[2]
    query = _scrub(parts.query) if parts.query else None
    # OAuth implicit flow puts the token in a query-shaped fragment.
    fragment = _scrub(parts.fragment) if "=" in parts.fragment else None

    if netloc == parts.netloc and query is None and fragment is None:
        return url
    return urlunsplit(
        (
            parts.scheme,
            netloc,
            parts.path,
            parts.query if query is None else query,
            parts.fragment if fragment is None else fragment,
        )
    )


__all__ = ["REDACTED", "is_credential_param", "redact_url"]
