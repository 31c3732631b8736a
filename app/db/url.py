from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

_ASYNC_DRIVER = "postgresql+psycopg"
_SSL_DISABLED = {"0", "false", "no", "off", "disable"}
_SSL_MODES = {"require", "verify-ca", "verify-full"}


def normalize_database_url(url: str) -> str:
    """Map hosted-provider URLs (``postgres://``, ``?ssl=true``) onto the psycopg async driver."""
    url = (url or "").strip()
    if not url:
        return url

    parts = urlsplit(url)
    scheme = parts.scheme
    if scheme in {"postgres", "postgresql", "postgresql+asyncpg", "postgresql+psycopg2"}:
        scheme = _ASYNC_DRIVER

    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    ssl_key = next((key for key in query if key.lower() == "ssl"), None)
    if ssl_key is not None:
        ssl_val = query.pop(ssl_key).lower().strip()
        if "sslmode" not in query:
            if ssl_val in _SSL_DISABLED:
                query["sslmode"] = "disable"
            elif ssl_val in _SSL_MODES:
                query["sslmode"] = ssl_val
            else:
                query["sslmode"] = "require"

    new_query = urlencode(query, doseq=True)
    return urlunsplit((scheme, parts.netloc, parts.path, new_query, parts.fragment))


def redact_database_url(url: str) -> str:
    """Drop the password from a database URL so it can be logged."""
    parts = urlsplit(url or "")
    if not parts.password:
        return url
    netloc = parts.netloc.replace(f":{parts.password}@", ":***@", 1)
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))
