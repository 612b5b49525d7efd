"""Credential lookup for extension private configuration (domain and RDP passwords).

Secrets are stored in the OS keyring under the `cloudext` service; environment
variables of the same name are the fallback for hosts without a keyring.
"""

import logging
import os

import keyring
from keyring.errors import KeyringError

logger = logging.getLogger(__name__)
SERVICE_NAME = "cloudext"


def get_secret(name: str) -> str | None:
    """Resolve secret: keyring -> os.environ."""
    try:
        value = keyring.get_password(SERVICE_NAME, name)
        if value:
            return value
    except KeyringError:
        logger.debug("keyring lookup failed for %s, falling back to env", name)
    return os.environ.get(name)


def require_secret(name: str) -> str:
    """Like get_secret, but a missing secret is an error."""
    value = get_secret(name)
    if not value:
        raise KeyError(f"Secret {name!r} not found in keyring or environment")
    return value
