"""ConflictValidator: one extension type per role within a batch."""

from typing import Sequence

from cloudext.extensions.models import ExtensionConfigurationInput, ExtensionRole


def validate(
    inputs: Sequence[ExtensionConfigurationInput | None],
) -> tuple[bool, str | None]:
    """Return (ok, conflicting "namespace.type").

    A role selector (the default counts as one) referenced by inputs of two different
    (namespace, type) pairs is a conflict. Several inputs of the same pair on one role
    are version or configuration updates and pass.
    """
    claims: dict[ExtensionRole, list[str]] = {}
    for config_input in inputs:
        if config_input is None:
            continue
        for role in config_input.target_roles():
            keys = claims.setdefault(role, [])
            if config_input.key not in keys:
                keys.append(config_input.key)
    for keys in claims.values():
        if len(keys) > 1:
            return False, keys[1]
    return True, None
