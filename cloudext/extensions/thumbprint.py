"""Thumbprint resolution for new extension instances.

Explicit input wins, then the rotation window, then the deployment, then the
service certificate store. Pure: returns the decision instead of mutating input.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Sequence

from cryptography import x509
from cryptography.hazmat.primitives import hashes

from cloudext.extensions.errors import CertificateParseError
from cloudext.extensions.models import CertificateRecord, ExtensionInstance

logger = logging.getLogger(__name__)

EXTENSION_CERTIFICATE_SUBJECT = "DC=Windows Azure Service Management for Extensions"
DEFAULT_THUMBPRINT_ALGORITHM = "sha1"


class ThumbprintSource(Enum):
    CERTIFICATE = "certificate"
    EXPLICIT = "explicit"
    TARGET_INSTANCE = "target_instance"
    WINDOW_INSTANCE = "window_instance"
    DEPLOYMENT_INSTANCE = "deployment_instance"
    CERTIFICATE_STORE = "certificate_store"
    NONE = "none"


@dataclass(frozen=True)
class ThumbprintResolution:
    thumbprint: str
    algorithm: str
    source: ThumbprintSource


def load_certificate(data: bytes) -> x509.Certificate:
    """Parse PEM or DER bytes. Raises CertificateParseError."""
    try:
        if data.lstrip().startswith(b"-----BEGIN"):
            return x509.load_pem_x509_certificate(data)
        return x509.load_der_x509_certificate(data)
    except ValueError as e:
        raise CertificateParseError(str(e)) from e


def certificate_thumbprint(data: bytes) -> str:
    """SHA-1 fingerprint as upper-case hex, the form the service reports."""
    return load_certificate(data).fingerprint(hashes.SHA1()).hex().upper()


def certificate_subject(record: CertificateRecord) -> str:
    """Subject DN of a stored certificate. Raises CertificateParseError."""
    if not record.raw_data:
        if record.subject_dn is None:
            raise CertificateParseError(f"Certificate {record.thumbprint} has no data")
        return record.subject_dn
    return load_certificate(record.raw_data).subject.rfc4514_string()


def find_extension_certificate(
    certificates: Sequence[CertificateRecord],
    subject: str = EXTENSION_CERTIFICATE_SUBJECT,
) -> CertificateRecord | None:
    """First certificate whose subject equals `subject`. Unparseable ones are skipped."""
    for record in certificates:
        try:
            if certificate_subject(record) == subject:
                return record
        except CertificateParseError as e:
            logger.debug("Skipping certificate %s: %s", record.thumbprint, e)
    return None


def _finalize(
    thumbprint: str, algorithm: str, source: ThumbprintSource, default_algorithm: str
) -> ThumbprintResolution:
    thumbprint = (thumbprint or "").strip()
    algorithm = (algorithm or "").strip()
    if thumbprint and not algorithm:
        algorithm = default_algorithm
    elif not thumbprint:
        algorithm = ""
    return ThumbprintResolution(thumbprint, algorithm, source)


def resolve_thumbprint(
    *,
    target_id: str,
    candidates: Sequence[ExtensionInstance],
    all_instances: Sequence[ExtensionInstance],
    certificates: Sequence[CertificateRecord] | Callable[[], Sequence[CertificateRecord]],
    explicit_certificate: bytes | None = None,
    explicit_thumbprint: str = "",
    explicit_algorithm: str = "",
    subject: str = EXTENSION_CERTIFICATE_SUBJECT,
    default_algorithm: str = DEFAULT_THUMBPRINT_ALGORITHM,
) -> ThumbprintResolution:
    """Apply the precedence rules in order; the first that yields material wins.

    An explicit algorithm, when given, overrides the algorithm of whatever
    material is found. An explicit certificate that cannot be parsed is a caller
    error and propagates as CertificateParseError. Only store certificates are
    skipped silently.
    `certificates` may be a callable so the store is only listed when needed.
    """
    explicit_algorithm = (explicit_algorithm or "").strip()
    if explicit_certificate:
        return _finalize(
            certificate_thumbprint(explicit_certificate),
            explicit_algorithm,
            ThumbprintSource.CERTIFICATE,
            default_algorithm,
        )
    if explicit_thumbprint and explicit_thumbprint.strip():
        return _finalize(
            explicit_thumbprint, explicit_algorithm, ThumbprintSource.EXPLICIT, default_algorithm
        )

    target = next((e for e in candidates if e.id == target_id), None)
    if target is not None:
        return _finalize(
            target.thumbprint,
            explicit_algorithm or target.thumbprint_algorithm,
            ThumbprintSource.TARGET_INSTANCE,
            default_algorithm,
        )
    if candidates:
        first = candidates[0]
        return _finalize(
            first.thumbprint,
            explicit_algorithm or first.thumbprint_algorithm,
            ThumbprintSource.WINDOW_INSTANCE,
            default_algorithm,
        )
    if all_instances:
        first = all_instances[0]
        return _finalize(
            first.thumbprint,
            explicit_algorithm or first.thumbprint_algorithm,
            ThumbprintSource.DEPLOYMENT_INSTANCE,
            default_algorithm,
        )

    if callable(certificates):
        certificates = certificates()
    cert = find_extension_certificate(certificates, subject)
    if cert is not None:
        return _finalize(
            cert.thumbprint,
            explicit_algorithm or cert.thumbprint_algorithm,
            ThumbprintSource.CERTIFICATE_STORE,
            default_algorithm,
        )
    return ThumbprintResolution("", "", ThumbprintSource.NONE)
