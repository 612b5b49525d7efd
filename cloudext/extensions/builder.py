"""ConfigurationBuilder: mutable working copy of a deployment's extension assignments."""

from typing import Callable, Iterable

from cloudext.extensions.models import ExtensionConfiguration, ExtensionInstance

InstanceLookup = Callable[[str], ExtensionInstance | None]


def _no_lookup(_extension_id: str) -> ExtensionInstance | None:
    return None


class ConfigurationBuilder:
    """Default bucket plus named-role buckets. An empty role list means the default bucket.

    Namespace/type matching goes through `lookup` (id -> remote instance); ids with no
    known instance never match. Buckets are independent: a role without an override
    inherits the default only from the caller's point of view, never here.
    """

    def __init__(
        self,
        configuration: ExtensionConfiguration | None = None,
        lookup: InstanceLookup | None = None,
    ) -> None:
        self._lookup = lookup or _no_lookup
        self._default: list[str] = []
        self._roles: dict[str, list[str]] = {}
        if configuration is not None:
            self.merge(configuration)

    def _matches(self, extension_id: str, namespace: str, type_: str) -> bool:
        instance = self._lookup(extension_id)
        return instance is not None and instance.matches(namespace, type_)

    def _any_match(self, ids: Iterable[str], namespace: str, type_: str) -> bool:
        return any(self._matches(i, namespace, type_) for i in ids)

    def _strip(self, ids: list[str], namespace: str, type_: str) -> list[str]:
        return [i for i in ids if not self._matches(i, namespace, type_)]

    def exist_any(self, extension_id: str) -> bool:
        """True if the id is assigned to the default bucket or any named role."""
        if extension_id in self._default:
            return True
        return any(extension_id in ids for ids in self._roles.values())

    def exist_type(self, namespace: str, type_: str) -> bool:
        """True if any bucket holds an extension of this namespace/type."""
        if self._any_match(self._default, namespace, type_):
            return True
        return any(self._any_match(ids, namespace, type_) for ids in self._roles.values())

    def exist(self, roles: Iterable[str] | None, namespace: str, type_: str) -> bool:
        role_names = list(roles or [])
        if not role_names:
            return self.exist_default(namespace, type_)
        return any(
            self._any_match(self._roles.get(r, []), namespace, type_) for r in role_names
        )

    def exist_default(self, namespace: str, type_: str) -> bool:
        return self._any_match(self._default, namespace, type_)

    def add(self, role: str, extension_id: str) -> None:
        ids = self._roles.setdefault(role, [])
        if extension_id not in ids:
            ids.append(extension_id)

    def add_default(self, extension_id: str) -> None:
        if extension_id not in self._default:
            self._default.append(extension_id)

    def remove(self, roles: Iterable[str] | None, namespace: str, type_: str) -> None:
        role_names = list(roles or [])
        if not role_names:
            self.remove_default(namespace, type_)
            return
        for r in role_names:
            if r in self._roles:
                self._roles[r] = self._strip(self._roles[r], namespace, type_)

    def remove_default(self, namespace: str, type_: str) -> None:
        self._default = self._strip(self._default, namespace, type_)

    def remove_any(self, namespace: str, type_: str) -> None:
        """Strip matches from the default bucket and from every named role."""
        self.remove_default(namespace, type_)
        for r in list(self._roles):
            self._roles[r] = self._strip(self._roles[r], namespace, type_)

    def merge(self, configuration: ExtensionConfiguration | None) -> None:
        """Union another configuration's assignments into this one."""
        if configuration is None:
            return
        for extension_id in configuration.default:
            self.add_default(extension_id)
        for role, ids in configuration.named_roles.items():
            for extension_id in ids:
                self.add(role, extension_id)

    def to_configuration(self) -> ExtensionConfiguration:
        """Materialize a fresh configuration. Empty role buckets are dropped."""
        return ExtensionConfiguration(
            default=list(self._default),
            named_roles={r: list(ids) for r, ids in self._roles.items() if ids},
        )
