"""In-memory Deployment Service: local dry runs and tests.

Slot configurations are kept as XML documents, so each read hands out a fresh copy
and each write replaces the whole document, as the real service does.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from cloudext.extensions.errors import RemoteOperationError
from cloudext.extensions.models import (
    CertificateRecord,
    DeploymentSlot,
    ExtensionConfiguration,
    ExtensionInstance,
)
from cloudext.extensions.wire import configuration_from_xml, configuration_to_xml

logger = logging.getLogger(__name__)


@dataclass
class _ServiceState:
    extensions: dict[str, ExtensionInstance] = field(default_factory=dict)
    certificates: list[CertificateRecord] = field(default_factory=list)
    deployments: dict[DeploymentSlot, str] = field(default_factory=dict)


class InMemoryDeploymentService:
    """DeploymentService backed by dicts. `calls` records every mutating call in order."""

    def __init__(self) -> None:
        self._services: dict[str, _ServiceState] = {}
        self.calls: list[tuple[str, str, str]] = []

    def _state(self, service_name: str) -> _ServiceState:
        return self._services.setdefault(service_name, _ServiceState())

    # --- Seeding ---

    def create_deployment(
        self,
        service_name: str,
        slot: DeploymentSlot,
        configuration: ExtensionConfiguration | None = None,
    ) -> None:
        self._state(service_name).deployments[slot] = configuration_to_xml(
            configuration or ExtensionConfiguration()
        )

    def seed_extension(self, service_name: str, instance: ExtensionInstance) -> None:
        self._state(service_name).extensions[instance.id] = instance

    def seed_certificate(self, service_name: str, certificate: CertificateRecord) -> None:
        self._state(service_name).certificates.append(certificate)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InMemoryDeploymentService":
        """Build from {service_name: {extensions, certificates, deployments}}."""
        service = cls()
        for service_name, entry in (data or {}).items():
            entry = entry or {}
            service._state(service_name)
            for item in entry.get("extensions") or []:
                service.seed_extension(service_name, ExtensionInstance.model_validate(item))
            for item in entry.get("certificates") or []:
                service.seed_certificate(service_name, CertificateRecord.model_validate(item))
            for slot_name, config in (entry.get("deployments") or {}).items():
                service.create_deployment(
                    service_name,
                    DeploymentSlot(slot_name),
                    ExtensionConfiguration.model_validate(config or {}),
                )
        return service

    @classmethod
    def from_yaml(cls, path: Path) -> "InMemoryDeploymentService":
        """Load a state snapshot. Raises on invalid YAML or validation error."""
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        if data is not None and not isinstance(data, dict):
            raise ValueError(f"Deployment snapshot must be a YAML object: {path}")
        return cls.from_dict(data or {})

    # --- DeploymentService ---

    def list_extensions(self, service_name: str) -> list[ExtensionInstance]:
        return list(self._state(service_name).extensions.values())

    def add_extension(self, service_name: str, instance: ExtensionInstance) -> None:
        state = self._state(service_name)
        if instance.id in state.extensions:
            raise RemoteOperationError("add_extension", instance.id, "extension id already exists")
        self.calls.append(("add_extension", service_name, instance.id))
        state.extensions[instance.id] = instance

    def delete_extension(self, service_name: str, extension_id: str) -> None:
        state = self._state(service_name)
        if extension_id not in state.extensions:
            raise RemoteOperationError("delete_extension", extension_id, "extension not found")
        self.calls.append(("delete_extension", service_name, extension_id))
        del state.extensions[extension_id]

    def list_certificates(self, service_name: str) -> list[CertificateRecord]:
        return list(self._state(service_name).certificates)

    def get_deployment_configuration(
        self, service_name: str, slot: DeploymentSlot
    ) -> ExtensionConfiguration | None:
        document = self._state(service_name).deployments.get(slot)
        return None if document is None else configuration_from_xml(document)

    def set_deployment_configuration(
        self,
        service_name: str,
        slot: DeploymentSlot,
        configuration: ExtensionConfiguration,
    ) -> None:
        state = self._state(service_name)
        if slot not in state.deployments:
            raise RemoteOperationError(
                "set_deployment_configuration", f"{service_name}/{slot.value}", "no deployment"
            )
        self.calls.append(("set_deployment_configuration", service_name, slot.value))
        state.deployments[slot] = configuration_to_xml(configuration)
        logger.debug("Stored configuration for %s/%s", service_name, slot.value)
