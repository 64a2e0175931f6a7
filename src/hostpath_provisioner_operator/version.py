"""Upgrade and downgrade admission for the deployed provisioner."""

from __future__ import annotations

from packaging.version import InvalidVersion, Version

from .utils.errors import DowngradeError


def parse_version(value: str) -> Version | None:
    """Parse a version string, returning None for non semantic tags like "latest"."""
    try:
        return Version(value)
    except InvalidVersion:
        return None


def can_upgrade(observed: str, target: str) -> bool:
    """Decide whether moving from the observed version to the target is an upgrade.

    A fresh install (no observed version) and an unchanged version are not
    upgrades. Unparsable versions never block progress, only a target that is
    verifiably older than the observed version does.

    Raises:
        DowngradeError: If the target is older than the observed version
    """
    if not observed:
        return False

    if observed == target:
        return False

    observed_version = parse_version(observed)
    target_version = parse_version(target)
    if observed_version is None or target_version is None:
        return True

    if target_version < observed_version:
        raise DowngradeError(str(observed_version), str(target_version))
    return target_version > observed_version
