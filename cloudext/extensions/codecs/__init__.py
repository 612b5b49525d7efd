"""Per-type field mapping for extension payloads, selected by (namespace, type)."""

import logging

from cloudext.extensions.contract import ExtensionCodec

logger = logging.getLogger(__name__)

_CODECS: dict[tuple[str, str], ExtensionCodec] = {}


def register_codec(codec: ExtensionCodec) -> None:
    """Register or replace the codec for codec.provider_namespace/codec.type."""
    key = (codec.provider_namespace, codec.type)
    if key in _CODECS:
        logger.debug("Replacing codec for %s.%s", *key)
    _CODECS[key] = codec


def get_codec(namespace: str, type_: str) -> ExtensionCodec | None:
    return _CODECS.get((namespace, type_))


def registered_codecs() -> list[ExtensionCodec]:
    return list(_CODECS.values())


from cloudext.extensions.codecs.domain_join import DomainJoinCodec  # noqa: E402
from cloudext.extensions.codecs.remote_desktop import RemoteDesktopCodec  # noqa: E402

register_codec(DomainJoinCodec())
register_codec(RemoteDesktopCodec())

__all__ = [
    "DomainJoinCodec",
    "RemoteDesktopCodec",
    "get_codec",
    "register_codec",
    "registered_codecs",
]
