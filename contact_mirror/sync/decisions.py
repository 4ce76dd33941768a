"""
Decision cache for "same person?" verdicts.

Holds the verdicts given for same-named records during one sync run so the
name-match clustering strategy asks at most once per name. The orchestrator
clears the cache whenever a new run starts fetching.
"""

import logging
from typing import Optional

from contact_mirror.utils.normalization import normalize_text

logger = logging.getLogger(__name__)


class DecisionCache:
    """
    In-memory mapping of normalized full name to a boolean verdict.

    Usage:
        cache = DecisionCache()
        if cache.get("jo||lee") is None:
            cache.set("jo||lee", ask_user())
    """

    def __init__(self) -> None:
        self._verdicts: dict[str, bool] = {}

    def get(self, name: str) -> Optional[bool]:
        """Return the cached verdict for name, or None if never decided."""
        return self._verdicts.get(normalize_text(name))

    def set(self, name: str, verdict: bool) -> None:
        """Record the verdict for name, replacing any earlier one."""
        key = normalize_text(name)
        self._verdicts[key] = bool(verdict)
        logger.debug(f"Cached verdict for '{key}': {'same' if verdict else 'different'}")

    def clear(self) -> None:
        """Forget every verdict."""
        self._verdicts.clear()

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and normalize_text(name) in self._verdicts

    def __len__(self) -> int:
        return len(self._verdicts)

    def __repr__(self) -> str:
        return f"DecisionCache(entries={len(self._verdicts)})"
