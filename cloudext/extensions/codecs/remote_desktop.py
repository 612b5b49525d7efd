"""Remote desktop (RDP) extension: a local account for remote access until an expiration date."""

from datetime import datetime
from typing import Sequence

from pydantic import BaseModel, Field

from cloudext.extensions.codecs import payload
from cloudext.extensions.models import (
    DeploymentSlot,
    ExtensionConfigurationInput,
    ExtensionContext,
    ExtensionInstance,
    ExtensionRole,
)

REMOTE_DESKTOP_NAMESPACE = "Microsoft.Windows.Azure.Extensions"
REMOTE_DESKTOP_TYPE = "RDP"


class RemoteDesktopPublicConfig(BaseModel):
    user_name: str
    expiration: datetime


class RemoteDesktopPrivateConfig(BaseModel):
    password: str = Field(repr=False)


class RemoteDesktopCodec:
    provider_namespace = REMOTE_DESKTOP_NAMESPACE
    type = REMOTE_DESKTOP_TYPE

    def serialize(
        self,
        public: RemoteDesktopPublicConfig,
        private: RemoteDesktopPrivateConfig | None = None,
    ) -> tuple[str, str]:
        public_root = payload.build_document(
            "PublicConfig",
            [("UserName", public.user_name), ("Expiration", public.expiration.isoformat())],
        )
        private_root = payload.build_document(
            "PrivateConfig", [("Password", private.password if private else None)]
        )
        return payload.to_string(public_root), payload.to_string(private_root)

    def deserialize(self, public_configuration: str) -> RemoteDesktopPublicConfig:
        root = payload.parse_document(public_configuration, "PublicConfig")
        return RemoteDesktopPublicConfig(
            user_name=payload.child_text(root, "UserName") or "",
            expiration=datetime.fromisoformat(
                (payload.child_text(root, "Expiration") or "").strip()
            ),
        )

    def build_context(
        self, instance: ExtensionInstance, role: ExtensionRole, slot: DeploymentSlot
    ) -> ExtensionContext:
        config = self.deserialize(instance.public_configuration)
        return ExtensionContext.from_instance(
            instance, role, slot, user_name=config.user_name, expiration=config.expiration
        )

    def new_input(
        self,
        public: RemoteDesktopPublicConfig,
        private: RemoteDesktopPrivateConfig | None = None,
        *,
        roles: Sequence[str] = (),
        version: str | None = None,
        certificate: bytes | None = None,
        certificate_thumbprint: str = "",
        thumbprint_algorithm: str = "",
    ) -> ExtensionConfigurationInput:
        public_xml, private_xml = self.serialize(public, private)
        return ExtensionConfigurationInput(
            provider_namespace=self.provider_namespace,
            type=self.type,
            roles=list(roles),
            version=version,
            certificate=certificate,
            certificate_thumbprint=certificate_thumbprint,
            thumbprint_algorithm=thumbprint_algorithm,
            public_configuration=public_xml,
            private_configuration=private_xml,
        )
