# pricesync/services/registry.py

"""Competitor registry lookups and dynamic loading of their components."""

import importlib
from typing import Any

from pricesync.config.settings import Settings
from pricesync.errors import ConfigurationError


def load_object(dotted_path: str) -> Any:
    """Dynamically import an attribute from its dotted module path."""
    module_path, attr_name = dotted_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, attr_name)


def resolve_competitors(
    competitor_ids: list[str] | None = None,
) -> list[dict[str, str]]:
    """Map competitor ids to their registry entries.

    Returns every registered competitor when *competitor_ids* is
    ``None``.  Raises ``ConfigurationError`` on unknown ids.
    """
    available = {c["id"]: c for c in Settings.COMPETITORS}
    if competitor_ids is None:
        return list(Settings.COMPETITORS)

    unknown = [c for c in competitor_ids if c not in available]
    if unknown:
        raise ConfigurationError(
            f"Unknown competitor(s): {', '.join(unknown)}; "
            f"available: {', '.join(sorted(available))}"
        )

    # Preserve request order, drop repeats
    seen: set[str] = set()
    resolved: list[dict[str, str]] = []
    for competitor_id in competitor_ids:
        if competitor_id not in seen:
            seen.add(competitor_id)
            resolved.append(available[competitor_id])
    return resolved
