"""Tests for thumbprint resolution: precedence, certificate store lookup, post-conditions."""

from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from cloudext.extensions.errors import CertificateParseError
from cloudext.extensions.models import CertificateRecord, ExtensionInstance
from cloudext.extensions.thumbprint import (
    EXTENSION_CERTIFICATE_SUBJECT,
    ThumbprintSource,
    certificate_subject,
    certificate_thumbprint,
    find_extension_certificate,
    resolve_thumbprint,
)

TARGET = "Web-DomainJoin-Production-1"


def _certificate(dc: str = "Windows Azure Service Management for Extensions") -> bytes:
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.DOMAIN_COMPONENT, dc)])
    now = datetime.now(timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=1))
        .not_valid_after(now + timedelta(days=1))
        .sign(key, hashes.SHA256())
    )
    return cert.public_bytes(serialization.Encoding.DER)


def _ext(ext_id: str, thumbprint: str, algorithm: str = "sha1") -> ExtensionInstance:
    return ExtensionInstance(
        id=ext_id,
        provider_namespace="NsA",
        type="DomainJoin",
        thumbprint=thumbprint,
        thumbprint_algorithm=algorithm,
    )


def _resolve(**overrides):
    kwargs = {
        "target_id": TARGET,
        "candidates": [],
        "all_instances": [],
        "certificates": [],
    }
    kwargs.update(overrides)
    return resolve_thumbprint(**kwargs)


class TestPrecedence:
    """Rules fire in order; exactly one wins."""

    def test_explicit_certificate_beats_everything(self) -> None:
        der = _certificate()
        target = _ext(TARGET, "OLD")
        result = _resolve(
            explicit_certificate=der,
            explicit_thumbprint="EXPLICIT",
            candidates=[target],
            all_instances=[target],
        )
        assert result.source is ThumbprintSource.CERTIFICATE
        assert result.thumbprint == certificate_thumbprint(der)
        assert result.algorithm == "sha1"

    def test_explicit_certificate_keeps_explicit_algorithm(self) -> None:
        result = _resolve(explicit_certificate=_certificate(), explicit_algorithm="sha256")
        assert result.algorithm == "sha256"

    def test_explicit_thumbprint_verbatim(self) -> None:
        result = _resolve(
            explicit_thumbprint="ABC",
            explicit_algorithm="sha256",
            candidates=[_ext(TARGET, "OLD")],
        )
        assert (result.thumbprint, result.algorithm) == ("ABC", "sha256")
        assert result.source is ThumbprintSource.EXPLICIT

    def test_target_instance_preferred_over_other_candidates(self) -> None:
        other = _ext("Web-DomainJoin-Production-0", "GEN0")
        target = _ext(TARGET, "GEN1", "sha256")
        result = _resolve(candidates=[other, target], all_instances=[other, target])
        assert (result.thumbprint, result.algorithm) == ("GEN1", "sha256")
        assert result.source is ThumbprintSource.TARGET_INSTANCE

    def test_first_window_candidate(self) -> None:
        gen0 = _ext("Web-DomainJoin-Production-0", "GEN0")
        result = _resolve(candidates=[gen0], all_instances=[_ext("elsewhere", "X"), gen0])
        assert result.thumbprint == "GEN0"
        assert result.source is ThumbprintSource.WINDOW_INSTANCE

    def test_first_deployment_instance(self) -> None:
        result = _resolve(all_instances=[_ext("a", "FIRST"), _ext("b", "SECOND")])
        assert result.thumbprint == "FIRST"
        assert result.source is ThumbprintSource.DEPLOYMENT_INSTANCE

    def test_explicit_algorithm_overrides_window_candidate(self) -> None:
        gen0 = _ext("Web-DomainJoin-Production-0", "GEN0")
        result = _resolve(candidates=[gen0], explicit_algorithm="sha256")
        assert (result.thumbprint, result.algorithm) == ("GEN0", "sha256")
        assert result.source is ThumbprintSource.WINDOW_INSTANCE

    def test_explicit_algorithm_overrides_deployment_instance(self) -> None:
        result = _resolve(all_instances=[_ext("a", "FIRST")], explicit_algorithm=" sha256 ")
        assert (result.thumbprint, result.algorithm) == ("FIRST", "sha256")
        assert result.source is ThumbprintSource.DEPLOYMENT_INSTANCE

    def test_blank_explicit_algorithm_keeps_found_algorithm(self) -> None:
        result = _resolve(all_instances=[_ext("a", "FIRST", "sha384")], explicit_algorithm="  ")
        assert result.algorithm == "sha384"

    def test_certificate_store_by_subject(self) -> None:
        store = [
            CertificateRecord(thumbprint="OTHER", raw_data=_certificate("Other")),
            CertificateRecord(thumbprint="EXT", raw_data=_certificate()),
        ]
        result = _resolve(certificates=store)
        assert result.thumbprint == "EXT"
        assert result.source is ThumbprintSource.CERTIFICATE_STORE

    def test_nothing_found(self) -> None:
        result = _resolve()
        assert (result.thumbprint, result.algorithm) == ("", "")
        assert result.source is ThumbprintSource.NONE

    def test_certificate_store_only_listed_when_needed(self) -> None:
        calls: list[int] = []

        def listing() -> list[CertificateRecord]:
            calls.append(1)
            return []

        _resolve(all_instances=[_ext("a", "X")], certificates=listing)
        assert calls == []
        _resolve(certificates=listing)
        assert calls == [1]


class TestPostConditions:
    def test_thumbprint_without_algorithm_defaults_to_sha1(self) -> None:
        result = _resolve(all_instances=[_ext("a", "X", "")])
        assert result.algorithm == "sha1"

    def test_custom_default_algorithm(self) -> None:
        result = _resolve(explicit_thumbprint="X", default_algorithm="sha256")
        assert result.algorithm == "sha256"

    def test_algorithm_without_thumbprint_is_cleared(self) -> None:
        result = _resolve(all_instances=[_ext("a", "", "sha1")])
        assert (result.thumbprint, result.algorithm) == ("", "")

    def test_blank_explicit_thumbprint_is_ignored(self) -> None:
        result = _resolve(explicit_thumbprint="   ", explicit_algorithm="sha1")
        assert result.source is ThumbprintSource.NONE
        assert result.algorithm == ""


class TestCertificateStore:
    """Subject parsing and silent skipping of unparseable certificates."""

    def test_unparseable_certificates_are_skipped(self) -> None:
        store = [
            CertificateRecord(thumbprint="BAD", raw_data=b"not a certificate"),
            CertificateRecord(thumbprint="GOOD", raw_data=_certificate()),
        ]
        found = find_extension_certificate(store)
        assert found is not None and found.thumbprint == "GOOD"

    def test_only_unparseable_means_no_match(self) -> None:
        store = [CertificateRecord(thumbprint="BAD", raw_data=b"\x00\x01")]
        assert find_extension_certificate(store) is None

    def test_subject_dn_used_without_raw_data(self) -> None:
        record = CertificateRecord(thumbprint="T", subject_dn=EXTENSION_CERTIFICATE_SUBJECT)
        assert certificate_subject(record) == EXTENSION_CERTIFICATE_SUBJECT
        assert find_extension_certificate([record]) is record

    def test_parsed_subject(self) -> None:
        record = CertificateRecord(thumbprint="T", raw_data=_certificate())
        assert certificate_subject(record) == EXTENSION_CERTIFICATE_SUBJECT

    def test_pem_certificate_thumbprint_matches_der(self) -> None:
        der = _certificate()
        pem = x509.load_der_x509_certificate(der).public_bytes(serialization.Encoding.PEM)
        assert certificate_thumbprint(pem) == certificate_thumbprint(der)
        assert len(certificate_thumbprint(der)) == 40

    def test_invalid_explicit_certificate_raises(self) -> None:
        with pytest.raises(CertificateParseError):
            _resolve(explicit_certificate=b"garbage")
