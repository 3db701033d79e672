"""
Tests for secret acquisition.
"""

import logging

import pytest
from pydantic import SecretStr

from addsctl.adapters.mock import MockSecretPrompt
from addsctl.core.errors import CredentialAcquisitionError, ErrorKind
from addsctl.core.services.secrets import acquire_secret


class TestAcquireSecret:
    def test_supplied_returned_unchanged(self):
        prompt = MockSecretPrompt()
        supplied = SecretStr("given-value")
        assert acquire_secret(supplied, prompt) is supplied
        assert prompt.calls("ask") == 0

    def test_prompts_when_not_supplied(self):
        prompt = MockSecretPrompt(answers=["typed-value"])
        value = acquire_secret(None, prompt, label="Safe mode administrator password")
        assert value.get_secret_value() == "typed-value"
        assert prompt.messages == ["Safe mode administrator password"]

    def test_none_answer(self):
        with pytest.raises(CredentialAcquisitionError) as exc_info:
            acquire_secret(None, MockSecretPrompt(answers=[None]))
        assert exc_info.value.kind == ErrorKind.CREDENTIAL_ACQUISITION_FAILED

    def test_empty_answer(self):
        with pytest.raises(CredentialAcquisitionError):
            acquire_secret(None, MockSecretPrompt(answers=[""]))

    def test_prompt_exception_not_exposed(self):
        prompt = MockSecretPrompt(error=RuntimeError("terminal detached: tty-detail-xyz"))
        with pytest.raises(CredentialAcquisitionError) as exc_info:
            acquire_secret(None, prompt)
        err = exc_info.value
        assert "tty-detail-xyz" not in str(err)
        assert err.__cause__ is None

    def test_value_never_logged(self, caplog):
        with caplog.at_level(logging.DEBUG):
            acquire_secret(None, MockSecretPrompt(answers=["do-not-log-me"]))
            acquire_secret(SecretStr("nor-me"), MockSecretPrompt())
        assert "do-not-log-me" not in caplog.text
        assert "nor-me" not in caplog.text
        assert "acquired from prompt" in caplog.text
        assert "supplied by caller" in caplog.text
