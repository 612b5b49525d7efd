"""Domain models: extension instances, role selectors, configurations, install requests."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_ROLE_NAME = "Default"


class DeploymentSlot(Enum):
    PRODUCTION = "Production"
    STAGING = "Staging"

    @classmethod
    def _missing_(cls, value: object) -> "DeploymentSlot | None":
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        return None


class ExtensionInstance(BaseModel):
    """A remotely registered extension. Private configuration is write-only."""

    model_config = ConfigDict(frozen=True)

    id: str
    provider_namespace: str
    type: str
    version: str | None = None
    thumbprint: str = ""
    thumbprint_algorithm: str = ""
    public_configuration: str = ""
    private_configuration: str = Field(default="", exclude=True, repr=False)

    def matches(self, namespace: str, type_: str) -> bool:
        return self.provider_namespace == namespace and self.type == type_


class CertificateRecord(BaseModel):
    """Certificate from the service store. subject_dn is used only when raw_data is empty."""

    model_config = ConfigDict(frozen=True)

    thumbprint: str
    thumbprint_algorithm: str = ""
    raw_data: bytes = b""
    subject_dn: str | None = None


class ExtensionRole(BaseModel):
    """Role selector: the default (all roles without an override) or a named role."""

    model_config = ConfigDict(frozen=True)

    role_name: str = ""

    @classmethod
    def default(cls) -> "ExtensionRole":
        return cls()

    @classmethod
    def named(cls, name: str) -> "ExtensionRole":
        if not name or not name.strip():
            raise ValueError("Role name cannot be empty")
        return cls(role_name=name.strip())

    @property
    def is_default(self) -> bool:
        return not self.role_name

    def prefix(self, default_prefix: str = DEFAULT_ROLE_NAME) -> str:
        """Role component of extension identifiers."""
        return default_prefix if self.is_default else self.role_name

    def __str__(self) -> str:
        return DEFAULT_ROLE_NAME if self.is_default else self.role_name


class ExtensionConfiguration(BaseModel):
    """Deployment-wide assignment snapshot, persisted per slot as one document."""

    model_config = ConfigDict(populate_by_name=True)

    default: list[str] = Field(default_factory=list, alias="Default")
    named_roles: dict[str, list[str]] = Field(default_factory=dict, alias="NamedRoles")

    def all_ids(self) -> list[str]:
        """Every referenced id, default bucket first. May contain repeats across roles."""
        ids = list(self.default)
        for role_ids in self.named_roles.values():
            ids.extend(role_ids)
        return ids


class ExtensionConfigurationInput(BaseModel):
    """Request to install one extension type on a set of roles (empty = default role)."""

    provider_namespace: str
    type: str
    roles: list[ExtensionRole] = Field(default_factory=list)
    version: str | None = None
    certificate: bytes | None = Field(default=None, repr=False)
    certificate_thumbprint: str = ""
    thumbprint_algorithm: str = ""
    public_configuration: str = ""
    private_configuration: str = Field(default="", repr=False)

    @field_validator("roles", mode="before")
    @classmethod
    def _coerce_roles(cls, value: Any) -> Any:
        """Accept plain role names; strip and drop duplicates keeping order."""
        if value is None:
            return []
        roles: list[ExtensionRole] = []
        for item in value:
            role = ExtensionRole.named(item) if isinstance(item, str) else item
            if isinstance(role, dict):
                role = ExtensionRole.model_validate(role)
            if role not in roles:
                roles.append(role)
        return roles

    @property
    def key(self) -> str:
        """namespace.type, as reported in conflict messages."""
        return f"{self.provider_namespace}.{self.type}"

    def target_roles(self) -> list[ExtensionRole]:
        return list(self.roles) if self.roles else [ExtensionRole.default()]


@dataclass(frozen=True)
class ExtensionContext:
    """What is installed on one role, as reported back to callers."""

    id: str
    provider_namespace: str
    type: str
    role: ExtensionRole
    slot: DeploymentSlot
    version: str | None = None
    thumbprint: str = ""
    thumbprint_algorithm: str = ""
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_instance(
        cls,
        instance: ExtensionInstance,
        role: ExtensionRole,
        slot: DeploymentSlot,
        **details: Any,
    ) -> "ExtensionContext":
        return cls(
            id=instance.id,
            provider_namespace=instance.provider_namespace,
            type=instance.type,
            role=role,
            slot=slot,
            version=instance.version,
            thumbprint=instance.thumbprint,
            thumbprint_algorithm=instance.thumbprint_algorithm,
            details=details,
        )
