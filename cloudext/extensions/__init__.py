"""Extension reconciliation: models, builder, allocation, thumbprints, validation, orchestrator."""

from cloudext.extensions.builder import ConfigurationBuilder
from cloudext.extensions.contract import DeploymentService, ExtensionCodec
from cloudext.extensions.errors import (
    AllocationExhausted,
    CertificateParseError,
    ExtensionError,
    IdentityInUse,
    RemoteOperationError,
    ValidationError,
)
from cloudext.extensions.identity import IdentityAllocator
from cloudext.extensions.memory import InMemoryDeploymentService
from cloudext.extensions.models import (
    CertificateRecord,
    DeploymentSlot,
    ExtensionConfiguration,
    ExtensionConfigurationInput,
    ExtensionContext,
    ExtensionInstance,
    ExtensionRole,
)
from cloudext.extensions.orchestrator import (
    ExtensionOrchestrator,
    InputFailure,
    ReconcileResult,
    UninstallResult,
)
from cloudext.extensions.thumbprint import ThumbprintResolution, resolve_thumbprint
from cloudext.extensions.validator import validate

__all__ = [
    "AllocationExhausted",
    "CertificateParseError",
    "CertificateRecord",
    "ConfigurationBuilder",
    "DeploymentService",
    "DeploymentSlot",
    "ExtensionCodec",
    "ExtensionConfiguration",
    "ExtensionConfigurationInput",
    "ExtensionContext",
    "ExtensionError",
    "ExtensionInstance",
    "ExtensionOrchestrator",
    "ExtensionRole",
    "IdentityAllocator",
    "IdentityInUse",
    "InMemoryDeploymentService",
    "InputFailure",
    "ReconcileResult",
    "RemoteOperationError",
    "ThumbprintResolution",
    "UninstallResult",
    "ValidationError",
    "resolve_thumbprint",
    "validate",
]
