"""Duplicate-free destination paths for PhotoSort.

The ClaimedPathSet records every destination handed out during a run (and
every file already present in the target). DuplicateResolver.claim() picks
the lowest {dup} counter whose path is not claimed and claims it under the
set's lock, so two workers can never receive the same path.
"""

import logging
import os
import threading
from typing import Iterable, Optional, Tuple

from photosort.core.errors import DuplicatePathExhausted
from photosort.core.template import Skeleton

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 100_000


def normalize_path(path: str) -> str:
    """Normalise a path for membership tests (absolute, case-folded where the OS is)."""
    return os.path.normcase(os.path.abspath(path))


class ClaimedPathSet:
    """Lock-guarded set of normalised destination paths.

    Owned by one run; the resolver holds the lock for a whole test-and-set.
    """

    def __init__(self, paths: Optional[Iterable[str]] = None):
        self._lock = threading.Lock()
        self._paths = set()
        if paths:
            self.seed(paths)

    def seed(self, paths: Iterable[str]) -> int:
        """Add existing paths. Returns the number added."""
        with self._lock:
            before = len(self._paths)
            self._paths.update(normalize_path(p) for p in paths)
            return len(self._paths) - before

    @property
    def lock(self) -> threading.Lock:
        return self._lock

    def contains_unlocked(self, normalized: str) -> bool:
        """Membership test; the caller must hold lock."""
        return normalized in self._paths

    def add_unlocked(self, normalized: str) -> None:
        """Insert; the caller must hold lock."""
        self._paths.add(normalized)

    def __contains__(self, path: str) -> bool:
        with self._lock:
            return normalize_path(path) in self._paths

    def __len__(self) -> int:
        with self._lock:
            return len(self._paths)


class DuplicateResolver:
    """Chooses the {dup} counter of each destination.

    Args:
        claimed: The run's ClaimedPathSet.
        max_attempts: Upper bound on counters tried for one skeleton.
    """

    def __init__(self, claimed: ClaimedPathSet, max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        self._claimed = claimed
        self._max_attempts = max_attempts

    @property
    def claimed(self) -> ClaimedPathSet:
        return self._claimed

    def claim(
        self,
        skeleton: Skeleton,
        target_root: str,
        own_path: Optional[str] = None,
    ) -> Tuple[str, int]:
        """Find and claim the first free destination for a skeleton.

        Starting at dup = 0, fills the skeleton, joins it onto the target
        root and tests the claimed set; the winner is inserted in the same
        critical section. A candidate equal to own_path counts as free.

        Args:
            skeleton: Result of render_skeleton().
            target_root: Target directory.
            own_path: The file's current path, if it may already be in place.

        Returns:
            Tuple of (absolute destination path, dup counter).

        Raises:
            DuplicatePathExhausted: If the only candidate is taken (no {dup}
                in the format) or max_attempts candidates were all taken.
        """
        own = normalize_path(own_path) if own_path else None
        attempts = self._max_attempts if skeleton.has_dup_hole else 1

        with self._claimed.lock:
            for dup in range(attempts):
                relative = skeleton.fill(dup)
                if not relative:
                    continue
                candidate = os.path.join(target_root, *relative.split("/"))
                normalized = normalize_path(candidate)
                if normalized == own or not self._claimed.contains_unlocked(normalized):
                    self._claimed.add_unlocked(normalized)
                    if dup:
                        logger.info(f"Destination taken, using duplicate counter {dup}: {candidate}")
                    return os.path.abspath(candidate), dup

        if not skeleton.has_dup_hole:
            if not skeleton.fill(0):
                raise DuplicatePathExhausted("The format renders an empty file name for this file")
            raise DuplicatePathExhausted(
                f"Destination already taken and the format has no {{dup}} placeholder: {skeleton.fill(0)}"
            )
        raise DuplicatePathExhausted(
            f"No free destination after {attempts} attempts for {skeleton.fill(0)!r}"
        )
