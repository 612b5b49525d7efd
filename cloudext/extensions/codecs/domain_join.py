"""DomainJoin extension: joins role instances to an AD domain or a workgroup."""

import xml.etree.ElementTree as ET
from enum import Enum
from typing import Sequence

from pydantic import BaseModel, Field

from cloudext import secrets
from cloudext.extensions.codecs import payload
from cloudext.extensions.models import (
    DeploymentSlot,
    ExtensionConfigurationInput,
    ExtensionContext,
    ExtensionInstance,
    ExtensionRole,
)

DOMAIN_JOIN_NAMESPACE = "Microsoft.Windows.Azure.Extensions"
DOMAIN_JOIN_TYPE = "DomainJoin"


class NameType(Enum):
    DOMAIN = "Domain"
    WORKGROUP = "Workgroup"


class JoinOption(Enum):
    """NetJoinDomain flags, serialized by name."""

    JOIN_DOMAIN = "JoinDomain"
    ACCT_CREATE = "AcctCreate"
    WIN9X_UPGRADE = "Win9XUpgrade"
    UNSECURED_JOIN = "UnsecuredJoin"
    PASSWORD_PASS = "PasswordPass"
    DEFER_SPN_SET = "DeferSPNSet"
    JOIN_WITH_NEW_NAME = "JoinWithNewName"
    JOIN_READ_ONLY = "JoinReadOnly"
    INSTALL_INVOKE = "InstallInvoke"


class DomainJoinPublicConfig(BaseModel):
    name: str
    name_type: NameType = NameType.DOMAIN
    new_name: str | None = None
    ou_path: str | None = None
    options: list[JoinOption] = Field(default_factory=list)
    restart: bool | None = None
    server: str | None = None
    unsecure: bool | None = None
    user: str | None = None
    local_user: str | None = None
    unjoin_domain_user: str | None = None

    @property
    def domain_name(self) -> str | None:
        return self.name if self.name_type is NameType.DOMAIN else None

    @property
    def workgroup_name(self) -> str | None:
        return self.name if self.name_type is NameType.WORKGROUP else None


class DomainJoinPrivateConfig(BaseModel):
    password: str | None = Field(default=None, repr=False)
    local_password: str | None = Field(default=None, repr=False)
    unjoin_domain_password: str | None = Field(default=None, repr=False)

    @classmethod
    def from_secrets(
        cls,
        password: str | None = None,
        local_password: str | None = None,
        unjoin_domain_password: str | None = None,
    ) -> "DomainJoinPrivateConfig":
        """Arguments are secret names, resolved through keyring then environment."""
        return cls(
            password=secrets.require_secret(password) if password else None,
            local_password=secrets.require_secret(local_password) if local_password else None,
            unjoin_domain_password=(
                secrets.require_secret(unjoin_domain_password) if unjoin_domain_password else None
            ),
        )


class DomainJoinCodec:
    provider_namespace = DOMAIN_JOIN_NAMESPACE
    type = DOMAIN_JOIN_TYPE

    def serialize(
        self,
        public: DomainJoinPublicConfig,
        private: DomainJoinPrivateConfig | None = None,
    ) -> tuple[str, str]:
        root = ET.Element("PublicConfig")
        payload.add_element(root, "Name", public.name, {"type": public.name_type.value})
        payload.add_element(root, "NewName", public.new_name)
        payload.add_element(root, "OUPath", public.ou_path)
        if public.options:
            options = ET.SubElement(root, "Options")
            for option in public.options:
                payload.add_element(options, "Option", option.value)
        payload.add_element(root, "Restart", public.restart)
        payload.add_element(root, "Server", public.server)
        payload.add_element(root, "Unsecure", public.unsecure)
        payload.add_element(root, "User", public.user)
        payload.add_element(root, "LocalUser", public.local_user)
        payload.add_element(root, "UnjoinDomainUser", public.unjoin_domain_user)

        private = private or DomainJoinPrivateConfig()
        private_root = payload.build_document(
            "PrivateConfig",
            [
                ("Password", private.password),
                ("LocalPassword", private.local_password),
                ("UnjoinDomainPassword", private.unjoin_domain_password),
            ],
        )
        return payload.to_string(root), payload.to_string(private_root)

    def deserialize(self, public_configuration: str) -> DomainJoinPublicConfig:
        root = payload.parse_document(public_configuration, "PublicConfig")
        name = payload.find_child(root, "Name")
        if name is None:
            raise ValueError("DomainJoin PublicConfig has no <Name>")
        options_el = payload.find_child(root, "Options")
        options = (
            [JoinOption(o.text.strip()) for o in options_el if o.text]
            if options_el is not None
            else []
        )
        return DomainJoinPublicConfig(
            name=name.text or "",
            name_type=NameType(name.get("type", NameType.DOMAIN.value)),
            new_name=payload.child_text(root, "NewName"),
            ou_path=payload.child_text(root, "OUPath"),
            options=options,
            restart=payload.child_bool(root, "Restart"),
            server=payload.child_text(root, "Server"),
            unsecure=payload.child_bool(root, "Unsecure"),
            user=payload.child_text(root, "User"),
            local_user=payload.child_text(root, "LocalUser"),
            unjoin_domain_user=payload.child_text(root, "UnjoinDomainUser"),
        )

    def build_context(
        self, instance: ExtensionInstance, role: ExtensionRole, slot: DeploymentSlot
    ) -> ExtensionContext:
        config = self.deserialize(instance.public_configuration)
        return ExtensionContext.from_instance(
            instance,
            role,
            slot,
            domain_name=config.domain_name,
            workgroup_name=config.workgroup_name,
            new_name=config.new_name,
            ou_path=config.ou_path,
            options=[o.value for o in config.options],
            restart=bool(config.restart),
            server=config.server,
            unsecure=bool(config.unsecure),
            user=config.user,
            local_user=config.local_user,
            unjoin_domain_user=config.unjoin_domain_user,
        )

    def new_input(
        self,
        public: DomainJoinPublicConfig,
        private: DomainJoinPrivateConfig | None = None,
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
