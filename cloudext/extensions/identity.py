"""IdentityAllocator: role-scoped extension ids within a bounded rotation window."""

import logging
from dataclasses import dataclass, field

from cloudext.extensions.builder import ConfigurationBuilder, InstanceLookup
from cloudext.extensions.errors import AllocationExhausted, IdentityInUse
from cloudext.extensions.models import DeploymentSlot, ExtensionInstance

logger = logging.getLogger(__name__)

ROTATION_WINDOW = 2
_ID_TEMPLATE = "{role}-{type}-{slot}-{index}"


@dataclass(frozen=True)
class Allocation:
    """Selected id plus the remote instances already registered under any window id."""

    id: str
    candidate_ids: list[str]
    candidates: list[ExtensionInstance] = field(default_factory=list)

    @property
    def existing(self) -> ExtensionInstance | None:
        """Remote instance at the selected id; must be deleted before re-creating it."""
        return next((e for e in self.candidates if e.id == self.id), None)


def extension_id(role: str, type_: str, slot: DeploymentSlot, index: int) -> str:
    return _ID_TEMPLATE.format(role=role, type=type_, slot=slot.value, index=index)


class IdentityAllocator:
    """At most `window` ids live per (role, type, slot): the assigned one and the next."""

    def __init__(self, window: int = ROTATION_WINDOW) -> None:
        if window < 1:
            raise AllocationExhausted(f"Rotation window must be at least 1, got {window}")
        self._window = window

    @property
    def window(self) -> int:
        return self._window

    def candidate_ids(self, role: str, type_: str, slot: DeploymentSlot) -> list[str]:
        return [extension_id(role, type_, slot, i) for i in range(self._window)]

    def allocate(
        self,
        role: str,
        type_: str,
        slot: DeploymentSlot,
        builder: ConfigurationBuilder,
        lookup: InstanceLookup,
    ) -> Allocation:
        """Pick the first window id not assigned anywhere in `builder`.

        When every id is assigned, an id whose assignment has no remote instance
        behind it is reused. Raises IdentityInUse if all of them are live.
        """
        ids = self.candidate_ids(role, type_, slot)
        candidates = [e for e in (lookup(i) for i in ids) if e is not None]
        available = next((i for i in ids if not builder.exist_any(i)), None)
        if available is None:
            live = {e.id for e in candidates}
            available = next((i for i in ids if i not in live), None)
            if available is None:
                raise IdentityInUse(
                    f"All {self._window} ids for {role}/{type_}/{slot.value} are assigned "
                    f"and live: {ids}"
                )
            logger.warning("Reusing assigned id %s, which has no remote instance", available)
        logger.debug("Allocated %s (live candidates: %s)", available, [e.id for e in candidates])
        return Allocation(id=available, candidate_ids=ids, candidates=candidates)
