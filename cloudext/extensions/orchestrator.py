"""ExtensionOrchestrator: install / set / add / uninstall over one deployment slot.

One command: fetch the slot's configuration, validate the batch, install per role
(allocate id, resolve thumbprint, delete-then-create remotely), reconcile the
assignments, persist the configuration as a whole document.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Sequence, TypeVar

from cloudext.extensions.builder import ConfigurationBuilder
from cloudext.extensions.codecs import get_codec
from cloudext.extensions.contract import DeploymentService, ExtensionCodec
from cloudext.extensions.errors import (
    ExtensionError,
    IdentityInUse,
    RemoteOperationError,
    ValidationError,
)
from cloudext.extensions.identity import IdentityAllocator
from cloudext.extensions.models import (
    DEFAULT_ROLE_NAME,
    CertificateRecord,
    DeploymentSlot,
    ExtensionConfiguration,
    ExtensionConfigurationInput,
    ExtensionContext,
    ExtensionInstance,
    ExtensionRole,
)
from cloudext.extensions.thumbprint import (
    DEFAULT_THUMBPRINT_ALGORITHM,
    EXTENSION_CERTIFICATE_SUBJECT,
    certificate_thumbprint,
    resolve_thumbprint,
)
from cloudext.extensions.validator import validate
from cloudext.settings import extension_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ReconcileStage(Enum):
    FETCHED = "fetched"
    VALIDATED = "validated"
    PER_ROLE_INSTALLED = "per_role_installed"
    RECONCILED = "reconciled"
    PERSISTED = "persisted"


@dataclass(frozen=True)
class InputFailure:
    """A remote failure or fully used id window that aborted one input; the batch went on."""

    input: ExtensionConfigurationInput
    error: RemoteOperationError | IdentityInUse


@dataclass
class ReconcileResult:
    configuration: ExtensionConfiguration
    failures: list[InputFailure] = field(default_factory=list)
    stage: ReconcileStage = ReconcileStage.PERSISTED

    @property
    def ok(self) -> bool:
        return not self.failures


@dataclass
class UninstallResult:
    # None when no role assignment was changed
    configuration: ExtensionConfiguration | None = None
    deleted: list[str] = field(default_factory=list)


def _as_slot(slot: DeploymentSlot | str) -> DeploymentSlot:
    return slot if isinstance(slot, DeploymentSlot) else DeploymentSlot(slot)


class ExtensionOrchestrator:
    """Reconciles extension instances and role assignments for one cloud service.

    Single-threaded. Concurrent commands against the same deployment are not
    coordinated: the last configuration written wins.
    """

    def __init__(
        self,
        service: DeploymentService,
        service_name: str,
        *,
        allocator: IdentityAllocator | None = None,
        default_role_prefix: str = DEFAULT_ROLE_NAME,
        certificate_subject: str = EXTENSION_CERTIFICATE_SUBJECT,
        thumbprint_algorithm: str = DEFAULT_THUMBPRINT_ALGORITHM,
    ) -> None:
        if service is None:
            raise ValueError("service is required")
        if not service_name:
            raise ValueError("service_name is required")
        self._service = service
        self._service_name = service_name
        self._allocator = allocator or IdentityAllocator()
        self._default_role_prefix = default_role_prefix
        self._certificate_subject = certificate_subject
        self._thumbprint_algorithm = thumbprint_algorithm
        self._extensions: list[ExtensionInstance] | None = None
        self._certificates: list[CertificateRecord] | None = None

    @classmethod
    def from_settings(
        cls,
        service: DeploymentService,
        service_name: str,
        settings: dict[str, Any],
    ) -> "ExtensionOrchestrator":
        """Build from the `extensions` section of settings.yaml."""
        cfg = extension_settings(settings)
        return cls(
            service,
            service_name,
            allocator=IdentityAllocator(cfg.rotation_window),
            default_role_prefix=cfg.default_role_prefix,
            certificate_subject=cfg.certificate_subject,
            thumbprint_algorithm=cfg.thumbprint_algorithm,
        )

    @property
    def service_name(self) -> str:
        return self._service_name

    # --- Deployment Service access ---

    def _remote(self, operation: str, target: str, call: Callable[..., T], *args: Any) -> T:
        """Invoke a collaborator method; foreign exceptions become RemoteOperationError."""
        try:
            return call(*args)
        except ExtensionError:
            raise
        except Exception as e:
            raise RemoteOperationError(operation, target, str(e)) from e

    def refresh(self) -> None:
        """Drop cached remote listings. Called at the start of every command."""
        self._extensions = None
        self._certificates = None

    def list_extensions(self) -> list[ExtensionInstance]:
        if self._extensions is None:
            self._extensions = list(
                self._remote(
                    "list_extensions",
                    self._service_name,
                    self._service.list_extensions,
                    self._service_name,
                )
                or []
            )
        return self._extensions

    def list_certificates(self) -> list[CertificateRecord]:
        if self._certificates is None:
            self._certificates = list(
                self._remote(
                    "list_certificates",
                    self._service_name,
                    self._service.list_certificates,
                    self._service_name,
                )
                or []
            )
        return self._certificates

    def get_extension(self, extension_id: str) -> ExtensionInstance | None:
        return next((e for e in self.list_extensions() if e.id == extension_id), None)

    def add_extension(self, instance: ExtensionInstance) -> None:
        extensions = self.list_extensions()
        self._remote(
            "add_extension",
            instance.id,
            self._service.add_extension,
            self._service_name,
            instance,
        )
        extensions.append(instance)

    def delete_extension(self, extension_id: str) -> None:
        self._remote(
            "delete_extension",
            extension_id,
            self._service.delete_extension,
            self._service_name,
            extension_id,
        )
        self._extensions = [e for e in self.list_extensions() if e.id != extension_id]

    def get_configuration(self, slot: DeploymentSlot | str) -> ExtensionConfiguration | None:
        slot = _as_slot(slot)
        return self._remote(
            "get_deployment_configuration",
            f"{self._service_name}/{slot.value}",
            self._service.get_deployment_configuration,
            self._service_name,
            slot,
        )

    def _persist(self, slot: DeploymentSlot, configuration: ExtensionConfiguration) -> None:
        self._remote(
            "set_deployment_configuration",
            f"{self._service_name}/{slot.value}",
            self._service.set_deployment_configuration,
            self._service_name,
            slot,
            configuration,
        )

    def get_builder(
        self, configuration: ExtensionConfiguration | None = None
    ) -> ConfigurationBuilder:
        return ConfigurationBuilder(configuration, self.get_extension)

    # --- Install ---

    def install(
        self,
        config_input: ExtensionConfigurationInput,
        slot: DeploymentSlot | str,
        base: ExtensionConfiguration | None = None,
    ) -> ExtensionConfiguration:
        """Install one input on its roles on top of `base` and return the result."""
        builder = self.get_builder(base)
        self._install_into(builder, config_input, _as_slot(slot))
        return builder.to_configuration()

    def _install_into(
        self,
        builder: ConfigurationBuilder,
        config_input: ExtensionConfigurationInput,
        slot: DeploymentSlot,
        installed: list[tuple[ExtensionRole, str]] | None = None,
    ) -> None:
        """Install per role; each completed (role, id) is appended to `installed`."""
        namespace, type_ = config_input.provider_namespace, config_input.type
        certificate = config_input.certificate
        thumbprint = config_input.certificate_thumbprint
        algorithm = config_input.thumbprint_algorithm
        for role in config_input.target_roles():
            allocation = self._allocator.allocate(
                role.prefix(self._default_role_prefix),
                type_,
                slot,
                builder,
                self.get_extension,
            )
            resolution = resolve_thumbprint(
                target_id=allocation.id,
                candidates=allocation.candidates,
                all_instances=self.list_extensions(),
                certificates=self.list_certificates,
                explicit_certificate=certificate,
                explicit_thumbprint=thumbprint,
                explicit_algorithm=algorithm,
                subject=self._certificate_subject,
                default_algorithm=self._thumbprint_algorithm,
            )
            # remaining roles of this input reuse the same material
            certificate = None
            thumbprint, algorithm = resolution.thumbprint, resolution.algorithm

            if allocation.existing is not None:
                logger.info("Deleting previous extension instance %s", allocation.id)
                self.delete_extension(allocation.id)

            if role.is_default:
                logger.info("Setting %s extension for all roles (%s)", type_, allocation.id)
            else:
                logger.info(
                    "Setting %s extension for role %s (%s)", type_, role.role_name, allocation.id
                )
            self.add_extension(
                ExtensionInstance(
                    id=allocation.id,
                    provider_namespace=namespace,
                    type=type_,
                    version=config_input.version,
                    thumbprint=resolution.thumbprint,
                    thumbprint_algorithm=resolution.algorithm,
                    public_configuration=config_input.public_configuration,
                    private_configuration=config_input.private_configuration,
                )
            )
            self._assign(builder, role, allocation.id, namespace, type_)
            if installed is not None:
                installed.append((role, allocation.id))

    @staticmethod
    def _assign(
        builder: ConfigurationBuilder,
        role: ExtensionRole,
        extension_id: str,
        namespace: str,
        type_: str,
    ) -> None:
        """Replace whatever this namespace/type had on the role with `extension_id`."""
        if role.is_default:
            builder.remove_default(namespace, type_)
            builder.add_default(extension_id)
        else:
            builder.remove([role.role_name], namespace, type_)
            builder.add(role.role_name, extension_id)

    # --- Batch workflows ---

    def _check(self, inputs: Sequence[ExtensionConfigurationInput | None]) -> None:
        """Fail before any remote mutation: role conflicts, unreadable explicit certificates."""
        ok, conflict = validate(inputs)
        if not ok:
            raise ValidationError(conflict or "")
        for config_input in inputs:
            if config_input is not None and config_input.certificate:
                certificate_thumbprint(config_input.certificate)

    def set(
        self,
        inputs: Sequence[ExtensionConfigurationInput | None],
        slot: DeploymentSlot | str,
    ) -> ReconcileResult:
        """Replace the slot's extension configuration with the batch.

        The emitted configuration holds only what the batch installed. Roles of an
        input that failed before getting a new id keep their current assignment of
        that namespace/type.
        """
        slot = _as_slot(slot)
        self.refresh()
        current = self.get_configuration(slot)
        logger.debug("%s/%s: %s", self._service_name, slot.value, ReconcileStage.FETCHED.value)
        self._check(inputs)
        result = self.get_builder()
        failures = self._run(inputs, slot, current, result)
        return self._finish(slot, result.to_configuration(), failures)

    def add(
        self,
        inputs: Sequence[ExtensionConfigurationInput | None],
        slot: DeploymentSlot | str,
        base_configuration: ExtensionConfiguration | None,
    ) -> ReconcileResult:
        """Layer the batch onto a caller-supplied configuration.

        Unrelated assignments in `base_configuration` are kept; a role's previous
        assignment of the same namespace/type is replaced. Passing the previous
        result back in allows cumulative layering across calls.
        """
        slot = _as_slot(slot)
        self.refresh()
        self._check(inputs)
        result = self.get_builder(base_configuration)
        failures = self._run(inputs, slot, base_configuration, result)
        return self._finish(slot, result.to_configuration(), failures)

    def _run(
        self,
        inputs: Sequence[ExtensionConfigurationInput | None],
        slot: DeploymentSlot,
        base: ExtensionConfiguration | None,
        result: ConfigurationBuilder,
    ) -> list[InputFailure]:
        """Install every input against `base` and assign each new (role, id) in `result`.

        Roles of a failed input that got no new id take their `base` assignment of
        that namespace/type instead.
        """
        logger.debug("%s/%s: %s", self._service_name, slot.value, ReconcileStage.VALIDATED.value)
        failures: list[InputFailure] = []
        for config_input in inputs:
            if config_input is None:
                continue
            namespace, type_ = config_input.provider_namespace, config_input.type
            installed: list[tuple[ExtensionRole, str]] = []
            try:
                self._install_into(self.get_builder(base), config_input, slot, installed)
            except (RemoteOperationError, IdentityInUse) as e:
                logger.exception("Failed to install %s: %s", config_input.key, e)
                failures.append(InputFailure(config_input, e))
                done = {role for role, _ in installed}
                for role in config_input.target_roles():
                    if role not in done:
                        self._keep(result, base, role, namespace, type_)
            for role, extension_id in installed:
                self._assign(result, role, extension_id, namespace, type_)
        logger.debug(
            "%s/%s: %s", self._service_name, slot.value, ReconcileStage.PER_ROLE_INSTALLED.value
        )
        return failures

    def _keep(
        self,
        result: ConfigurationBuilder,
        base: ExtensionConfiguration | None,
        role: ExtensionRole,
        namespace: str,
        type_: str,
    ) -> None:
        """Carry the role's `base` assignment of namespace/type into `result` if it has none."""
        if base is None:
            return
        if role.is_default:
            if result.exist_default(namespace, type_):
                return
            ids = base.default
        else:
            if result.exist([role.role_name], namespace, type_):
                return
            ids = base.named_roles.get(role.role_name, [])
        for extension_id in ids:
            instance = self.get_extension(extension_id)
            if instance is None or not instance.matches(namespace, type_):
                continue
            logger.info("Keeping %s on %s after failed install", extension_id, role)
            if role.is_default:
                result.add_default(extension_id)
            else:
                result.add(role.role_name, extension_id)

    def _finish(
        self,
        slot: DeploymentSlot,
        configuration: ExtensionConfiguration,
        failures: list[InputFailure],
    ) -> ReconcileResult:
        logger.debug("%s/%s: %s", self._service_name, slot.value, ReconcileStage.RECONCILED.value)
        self._persist(slot, configuration)
        logger.info(
            "Persisted extension configuration for %s/%s (%d failed inputs)",
            self._service_name,
            slot.value,
            len(failures),
        )
        return ReconcileResult(configuration, failures, ReconcileStage.PERSISTED)

    # --- Uninstall ---

    def uninstall(
        self,
        namespace: str,
        type_: str,
        slot: DeploymentSlot | str = DeploymentSlot.PRODUCTION,
        roles: Iterable[str] | None = None,
        *,
        all_roles: bool = False,
        uninstall_configuration: bool = False,
    ) -> UninstallResult:
        """Remove role assignments and, optionally, orphaned remote instances.

        `roles=None` requests no role removal, an empty list means the default bucket,
        `all_roles` strips the type from every bucket. With `uninstall_configuration`
        every instance of the namespace/type not referenced by Production or Staging
        is deleted; referenced instances are left alone.
        """
        slot = _as_slot(slot)
        self.refresh()
        outcome = UninstallResult()
        role_names = None if roles is None else [ExtensionRole.named(r).role_name for r in roles]

        if all_roles or role_names is not None:
            current = self.get_configuration(slot)
            builder = self.get_builder(current)
            if all_roles and builder.exist_type(namespace, type_):
                builder.remove_any(namespace, type_)
                logger.info("Removing %s extension from all roles of %s", type_, self._service_name)
                outcome.configuration = builder.to_configuration()
            elif role_names is not None and builder.exist(role_names, namespace, type_):
                builder.remove(role_names, namespace, type_)
                self._log_role_removal(builder, role_names, namespace, type_)
                outcome.configuration = builder.to_configuration()
            else:
                logger.info("No existing %s.%s extensions enabled on roles", namespace, type_)
            if outcome.configuration is not None:
                self._persist(slot, outcome.configuration)

        if uninstall_configuration:
            outcome.deleted = self._delete_orphans(namespace, type_)
        return outcome

    def _log_role_removal(
        self,
        builder: ConfigurationBuilder,
        role_names: list[str],
        namespace: str,
        type_: str,
    ) -> None:
        if not role_names:
            logger.info("Removing %s extension from all roles of %s", type_, self._service_name)
            return
        default_exists = builder.exist_default(namespace, type_)
        for r in role_names:
            logger.info("Removing %s extension from role %s of %s", type_, r, self._service_name)
            if default_exists:
                logger.info("Role %s falls back to the default %s extension", r, type_)

    def _delete_orphans(self, namespace: str, type_: str) -> list[str]:
        merged = self.get_builder()
        for slot in DeploymentSlot:
            merged.merge(self.get_configuration(slot))
        deleted: list[str] = []
        for instance in list(self.list_extensions()):
            if instance.matches(namespace, type_) and not merged.exist_any(instance.id):
                logger.info("Deleting orphaned extension instance %s", instance.id)
                self.delete_extension(instance.id)
                deleted.append(instance.id)
        return deleted

    # --- Reporting ---

    def get_contexts(
        self, namespace: str, type_: str, slot: DeploymentSlot | str
    ) -> list[ExtensionContext]:
        """Extension of this namespace/type assigned to each role, decoded when possible."""
        slot = _as_slot(slot)
        self.refresh()
        configuration = self.get_configuration(slot)
        if configuration is None:
            return []
        codec = get_codec(namespace, type_)
        buckets = [(ExtensionRole.default(), configuration.default)] + [
            (ExtensionRole.named(r), ids) for r, ids in configuration.named_roles.items()
        ]
        contexts: list[ExtensionContext] = []
        for role, ids in buckets:
            for extension_id in ids:
                instance = self.get_extension(extension_id)
                if instance is None or not instance.matches(namespace, type_):
                    continue
                contexts.append(self._context(codec, instance, role, slot))
        return contexts

    @staticmethod
    def _context(
        codec: ExtensionCodec | None,
        instance: ExtensionInstance,
        role: ExtensionRole,
        slot: DeploymentSlot,
    ) -> ExtensionContext:
        if codec is not None:
            try:
                return codec.build_context(instance, role, slot)
            except ValueError as e:
                logger.warning("Cannot decode public configuration of %s: %s", instance.id, e)
        return ExtensionContext.from_instance(instance, role, slot)
