"""Registry of target addresses the search compares against."""

import threading
from typing import Dict, Iterable, List, Optional

from loguru import logger

from .error_handling import InvalidAddressError, DuplicateTargetError
from .models import TargetAddress


MIN_ADDRESS_LENGTH = 26
MAX_ADDRESS_LENGTH = 35


class TargetRegistry:
    """Administratively managed set of target addresses."""

    def __init__(self, targets: Iterable[TargetAddress] = ()):
        self._targets: Dict[str, TargetAddress] = {}
        self._lock = threading.Lock()
        for target in targets:
            self.add(target.address, target.label)

    def add(self, address: str, label: Optional[str] = None) -> TargetAddress:
        address = address.strip()
        if not MIN_ADDRESS_LENGTH <= len(address) <= MAX_ADDRESS_LENGTH:
            raise InvalidAddressError(
                f"Address must be {MIN_ADDRESS_LENGTH}-{MAX_ADDRESS_LENGTH} characters (got {len(address)})"
            )

        with self._lock:
            if any(t.address == address for t in self._targets.values()):
                raise DuplicateTargetError(f"Target already registered: {address}")
            target = TargetAddress(address=address, label=label)
            self._targets[target.id] = target

        logger.info(f"Added target {address} ({label or 'unlabelled'})")
        return target

    def remove(self, target_id: str) -> TargetAddress:
        with self._lock:
            target = self._targets.pop(target_id)
        logger.info(f"Removed target {target.address}")
        if not self._targets:
            logger.warning("No target addresses configured; searches cannot match")
        return target

    def list(self) -> List[TargetAddress]:
        return list(self._targets.values())

    def match(self, address: str) -> Optional[TargetAddress]:
        """Return the target equal to ``address``, if any."""
        for target in list(self._targets.values()):
            if target.address == address:
                return target
        return None

    def __len__(self) -> int:
        return len(self._targets)
