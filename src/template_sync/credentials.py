"""Transient credential handling for repository URLs.

Tokens are embedded into HTTPS clone URLs as user-info (``https://TOK:@host/...``)
so that clone and push authenticate without touching the user's credential
store. Anything that may end up in a log line goes through ``mask_url`` or
``redact`` first.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from urllib.parse import quote, unquote, urlsplit, urlunsplit

from .constants import DEFAULT_TOKEN_HOSTS

MASK = "***"


@dataclass(frozen=True)
class Credentials:
    """Username/password pair supplied to a single git connection.

    Attributes:
        username (str): The user name (for token auth, the token itself).
        password (str): The password; empty for token auth.
    """

    username: str
    password: str = ""

    def __repr__(self) -> str:
        return f"Credentials(username={MASK!r}, password={MASK!r})"


def inject_token(
    url: str, token: str, hosts: Iterable[str] = tuple(DEFAULT_TOKEN_HOSTS)
) -> str:
    """Embeds an access token as the user-info component of an HTTPS URL.

    Only ``https`` URLs whose host is listed in ``hosts`` and that carry no
    user-info yet are rewritten; every other URL is returned unchanged. The
    token is percent-encoded, so a token without reserved characters is
    embedded verbatim.

    Args:
        url (str): The repository URL.
        token (str): The access token.
        hosts (Iterable[str]): Hosts eligible for injection.

    Returns:
        str: The URL with ``token:`` ahead of the host, or ``url`` unchanged.

    Raises:
        ValueError: If the token is empty.
    """
    if not token:
        raise ValueError("Access token must not be empty")

    parts = urlsplit(url)
    if parts.scheme != "https" or parts.username is not None:
        return url
    if (parts.hostname or "") not in {h.lower() for h in hosts}:
        return url

    netloc = f"{quote(token, safe='')}:@{parts.netloc}"
    return urlunsplit(parts._replace(netloc=netloc))


def credentials_from_url(url: str) -> Credentials | None:
    """Resolves the user-info embedded in a URL.

    Args:
        url (str): A repository URL, possibly carrying ``user[:password]@``.

    Returns:
        Credentials | None: The decoded credentials (empty password when only a
                            user name is present), or None without user-info.
    """
    parts = urlsplit(url)
    if not parts.username:
        return None
    return Credentials(unquote(parts.username), unquote(parts.password or ""))


def mask_url(url: str) -> str:
    """Replaces any user-info in a URL with a mask, for logging."""
    parts = urlsplit(url)
    if parts.username is None and parts.password is None:
        return url
    host = parts.netloc.rpartition("@")[2]
    return urlunsplit(parts._replace(netloc=f"{MASK}@{host}"))


def redact(text: str, secrets: Iterable[str]) -> str:
    """Removes every occurrence of the given secrets from ``text``.

    Both the raw and the percent-encoded form of each secret are masked, since
    git echoes URLs in the encoded form.
    """
    for secret in secrets:
        if not secret:
            continue
        text = text.replace(secret, MASK)
        encoded = quote(secret, safe="")
        if encoded != secret:
            text = text.replace(encoded, MASK)
    return text
