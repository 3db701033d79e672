"""
Secret acquisition — use the supplied value or ask for it.

The value itself is never logged; only whether it was supplied or
prompted for.
"""

from __future__ import annotations

import logging

from pydantic import SecretStr

from addsctl.adapters.base import SecretPrompt
from addsctl.core.errors import CredentialAcquisitionError

logger = logging.getLogger(__name__)


def acquire_secret(
    supplied: SecretStr | None,
    prompt: SecretPrompt,
    *,
    label: str = "Safe mode administrator password",
    log: logging.Logger | None = None,
) -> SecretStr:
    """Return ``supplied`` unchanged, or prompt for the secret.

    Raises:
        CredentialAcquisitionError: The prompt was cancelled, failed, or
            returned nothing. The prompt's own exception is not exposed.
    """
    log = log or logger

    if supplied is not None:
        log.info("%s supplied by caller", label)
        return supplied

    log.debug("Prompting for %s", label.lower())
    try:
        value = prompt.ask(label)
    except Exception as e:
        log.debug("Secret prompt raised %s", type(e).__name__)
        value = None

    if value is None or not value.get_secret_value():
        error = CredentialAcquisitionError(
            f"No value was entered for: {label}",
            tips=[
                "The prompt may have been cancelled or received invalid input; run the command again.",
                "For unattended runs, supply the value through the environment instead of the prompt.",
            ],
        )
        log.error(error.summary)
        raise error

    log.info("%s acquired from prompt", label)
    return value
