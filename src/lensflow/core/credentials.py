"""API credential selection.

Both provider clients read ``api_key`` from a selector at request time, so a
credential re-selected after an authorization failure applies to the next
call without rebuilding the clients.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Optional

import click

from .exceptions import CredentialError
from .logger import audit_log, get_logger

logger = get_logger(__name__)


class CredentialSelector(ABC):
    """Source of the API key used by the provider clients."""

    @property
    @abstractmethod
    def api_key(self) -> Optional[str]:
        """The currently selected key, if any."""

    async def has_selected_credential(self) -> bool:
        """Check whether a credential is currently selected."""
        return bool(self.api_key)

    @abstractmethod
    async def select_credential(self) -> None:
        """Ask for a (new) credential, blocking until one is supplied."""

    def require_api_key(self) -> str:
        """Return the selected key or raise ``CredentialError``."""
        key = self.api_key
        if not key:
            raise CredentialError("No API key selected")
        return key


class StaticCredentialSelector(CredentialSelector):
    """Selector holding a fixed key, e.g. from configuration."""

    def __init__(self, api_key: Optional[str] = None):
        self._api_key = api_key

    @property
    def api_key(self) -> Optional[str]:
        return self._api_key

    async def select_credential(self) -> None:
        # Nothing to prompt with; keep the configured key.
        logger.warning("Credential re-selection requested but the key is fixed by configuration")
        audit_log("CREDENTIAL_RESELECT_UNAVAILABLE")


class PromptCredentialSelector(CredentialSelector):
    """Selector that asks for a key on the terminal."""

    def __init__(self, api_key: Optional[str] = None, prompt_text: str = "API key"):
        self._api_key = api_key
        self.prompt_text = prompt_text

    @property
    def api_key(self) -> Optional[str]:
        return self._api_key

    async def select_credential(self) -> None:
        audit_log("CREDENTIAL_PROMPT")
        # click.prompt blocks; keep the event loop free for in-flight jobs.
        key = await asyncio.to_thread(click.prompt, self.prompt_text, hide_input=True)
        key = (key or "").strip()
        if not key:
            raise CredentialError("Empty API key entered")
        self._api_key = key
        audit_log("CREDENTIAL_SELECTED")
        logger.info("New API key selected")
