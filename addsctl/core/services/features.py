"""
Feature installer — idempotently ensure a Windows role/feature is present.

Flow: query → (installed: done) → install → re-query → verify.
"""

from __future__ import annotations

import logging

from addsctl.adapters.base import FeatureManager
from addsctl.core.errors import FeatureNotFoundError, FeatureVerificationError
from addsctl.core.models.results import FeatureState
from addsctl.core.observability.logging_config import SUCCESS

logger = logging.getLogger(__name__)

AD_DS_FEATURE = "AD-Domain-Services"


def ensure_feature(
    features: FeatureManager,
    name: str = AD_DS_FEATURE,
    *,
    log: logging.Logger | None = None,
) -> FeatureState:
    """Make sure ``name`` is installed.

    Returns:
        The verified feature state.

    Raises:
        FeatureNotFoundError: The OS doesn't know the feature. No install
            is attempted.
        FeatureVerificationError: The install ran but the feature is
            still not installed afterwards.
    """
    log = log or logger

    state = features.get_feature(name)
    if state is None:
        error = FeatureNotFoundError(
            f"Windows feature '{name}' was not found on this system",
            tips=[
                "Run Get-WindowsFeature to list the features this edition offers.",
                "Check the feature name for typos; names are like 'AD-Domain-Services'.",
            ],
        )
        log.error(error.summary)
        raise error

    if state.installed:
        log.info("Feature %s already installed", name)
        return state

    log.info("Installing feature %s (state: %s)", name, state.install_state)
    result = features.install_feature(name)
    if result.restart_needed:
        log.warning("Feature %s requires a restart to complete installation", name)

    verified = features.get_feature(name)
    if verified is None or not verified.installed:
        error = FeatureVerificationError(
            f"Post-install verification failed for feature '{name}'",
            details=[
                f"installer reported success={result.success}, exit code {result.exit_code or 'n/a'}",
                f"state after install: {verified.install_state if verified else 'not found'}",
            ],
            tips=[
                "Check the Server Manager event log for the install failure.",
                "If a restart is pending, reboot and run the command again.",
            ],
        )
        log.error(error.summary)
        raise error

    log.log(SUCCESS, "Feature %s installed", name)
    return verified
