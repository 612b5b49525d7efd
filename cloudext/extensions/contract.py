"""Collaborator protocols: the Deployment Service and per-type extension codecs.

The orchestrator receives a DeploymentService at construction; codecs are looked up
by (namespace, type) in cloudext.extensions.codecs.
"""

from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel

from cloudext.extensions.models import (
    CertificateRecord,
    DeploymentSlot,
    ExtensionConfiguration,
    ExtensionConfigurationInput,
    ExtensionContext,
    ExtensionInstance,
    ExtensionRole,
)


@runtime_checkable
class DeploymentService(Protocol):
    """Remote service holding extension instances, certificates and slot configurations.

    Failures surface as RemoteOperationError (or any exception, which the orchestrator
    wraps). Retry policy, if any, belongs to the implementation.
    """

    def list_extensions(self, service_name: str) -> list[ExtensionInstance]: ...

    def add_extension(self, service_name: str, instance: ExtensionInstance) -> None:
        """Register a new instance. Fails if the id already exists."""

    def delete_extension(self, service_name: str, extension_id: str) -> None:
        """Delete by id. Not guaranteed idempotent; check existence first."""

    def list_certificates(self, service_name: str) -> list[CertificateRecord]: ...

    def get_deployment_configuration(
        self, service_name: str, slot: DeploymentSlot
    ) -> ExtensionConfiguration | None:
        """Current configuration of the slot, or None if the slot has no deployment."""

    def set_deployment_configuration(
        self,
        service_name: str,
        slot: DeploymentSlot,
        configuration: ExtensionConfiguration,
    ) -> None:
        """Replace the slot's configuration as a whole document."""


@runtime_checkable
class ExtensionCodec(Protocol):
    """Field mapping for one extension type. The core only sees the serialized strings."""

    provider_namespace: str
    type: str

    def serialize(
        self, public: BaseModel, private: BaseModel | None = None
    ) -> tuple[str, str]:
        """Return (public_configuration, private_configuration) payloads."""

    def deserialize(self, public_configuration: str) -> BaseModel:
        """Parse a public configuration payload back into its model."""

    def build_context(
        self, instance: ExtensionInstance, role: ExtensionRole, slot: DeploymentSlot
    ) -> ExtensionContext: ...

    def new_input(self, *args: Any, **kwargs: Any) -> ExtensionConfigurationInput:
        """Build an install request for this extension type."""
