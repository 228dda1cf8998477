"""
Sign-in for the Microsoft Graph calendar backend (MSAL device code flow).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import keyring
import msal
from keyring.errors import KeyringError
from rich.console import Console

from ..domain.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

console = Console()


KEYRING_SERVICE_NAME = "mealslot"
DEFAULT_CACHE_FILE = Path.home() / ".mealslot_token_cache.json"


class GraphAuthenticator:
    """
    Gets Graph access tokens for reading busy times and writing recipes.

    Tokens are cached in the system keyring under ``client_id:tenant_id``.
    If the keyring backend fails, the cache moves to a plaintext file and
    ``insecure_storage_warning`` says so.
    """

    SCOPES = ["Calendars.ReadWrite"]

    def __init__(
        self,
        client_id: str,
        tenant_id: str,
        authority_url: str | None = None,
        cache_file: Path | None = None
    ):
        self.client_id = client_id
        self.tenant_id = tenant_id
        self.authority = authority_url or f"https://login.microsoftonline.com/{tenant_id}"
        self.cache_file = cache_file or DEFAULT_CACHE_FILE

        self._cache_key = f"{client_id}:{tenant_id}"
        self._use_keyring = True
        self._insecure_storage_warning: Optional[str] = None

        self.cache = self._restore_cache()
        self.app = self._build_app()

    def _build_app(self) -> msal.PublicClientApplication:
        return msal.PublicClientApplication(
            client_id=self.client_id,
            authority=self.authority,
            token_cache=self.cache
        )

    @property
    def cache_backend(self) -> str:
        """``"keyring"`` or ``"file"``."""
        return "keyring" if self._use_keyring else "file"

    @property
    def insecure_storage_warning(self) -> Optional[str]:
        return self._insecure_storage_warning

    def _restore_cache(self) -> msal.SerializableTokenCache:
        cache = msal.SerializableTokenCache()

        serialized = self._read_keyring()
        if serialized is None:
            serialized = self._read_cache_file()

        if serialized:
            try:
                cache.deserialize(serialized)
            except ValueError as exc:
                logger.warning("Ignoring unreadable token cache: %s", exc)

        return cache

    def _read_keyring(self) -> Optional[str]:
        try:
            return keyring.get_password(KEYRING_SERVICE_NAME, self._cache_key)
        except KeyringError as exc:  # pragma: no cover - environment dependent
            self._disable_keyring(f"read failed: {exc}")
            return None

    def _read_cache_file(self) -> Optional[str]:
        if not self.cache_file.exists():
            return None
        try:
            return self.cache_file.read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not read token cache %s: %s", self.cache_file, exc)
            return None

    def _persist_cache(self) -> None:
        if not self.cache.has_state_changed:
            return

        serialized = self.cache.serialize()
        if self._use_keyring:
            try:
                keyring.set_password(KEYRING_SERVICE_NAME, self._cache_key, serialized)
                return
            except KeyringError as exc:  # pragma: no cover - environment dependent
                self._disable_keyring(f"write failed: {exc}")

        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            self.cache_file.write_text(serialized, encoding="utf-8")
            self.cache_file.chmod(0o600)
        except OSError as exc:
            logger.warning("Could not write token cache %s: %s", self.cache_file, exc)

    def _disable_keyring(self, reason: str) -> None:
        if self._use_keyring:
            logger.warning("Keyring unavailable (%s), using %s", reason, self.cache_file)
        self._use_keyring = False
        if not self._insecure_storage_warning:
            self._insecure_storage_warning = (
                f"Keyring unavailable ({reason}). "
                f"Graph tokens are stored in plaintext at {self.cache_file}."
            )

    def get_access_token(self, force_refresh: bool = False) -> str:
        """
        Return a Graph access token, signing in interactively if needed.

        Raises:
            AuthenticationError: If the device code sign-in fails
        """
        if not force_refresh:
            accounts = self.app.get_accounts()
            if accounts:
                result = self.app.acquire_token_silent(scopes=self.SCOPES, account=accounts[0])
                if result and "access_token" in result:
                    self._persist_cache()
                    return result["access_token"]

        return self._sign_in_with_device_code()

    def _sign_in_with_device_code(self) -> str:
        try:
            flow = self.app.initiate_device_flow(scopes=self.SCOPES)
        except Exception as exc:  # pragma: no cover - MSAL internal failure
            raise AuthenticationError(f"Could not start Microsoft sign-in: {exc}") from exc

        if "user_code" not in flow:
            raise AuthenticationError(
                f"Could not start Microsoft sign-in: {flow.get('error_description', 'Unknown error')}"
            )

        console.print("\n[bold cyan]🔐 Microsoft sign-in[/bold cyan]")
        console.print("mealslot needs to read your calendar and add recipes to the cooking calendar.")
        console.print(f"Open [bold cyan]{flow['verification_uri']}[/bold cyan] "
                      f"and enter [bold yellow]{flow['user_code']}[/bold yellow]\n")
        console.print("[dim]Waiting for sign-in...[/dim]\n")

        result = self.app.acquire_token_by_device_flow(flow)
        if "access_token" not in result:
            raise AuthenticationError(
                f"Microsoft sign-in failed: {result.get('error_description', 'Unknown error')}"
            )

        console.print("[bold green]✓ Signed in[/bold green]\n")
        self._persist_cache()
        return result["access_token"]

    def clear_cache(self) -> None:
        """Forget stored tokens so the next run signs in again."""
        if self.cache_file.exists():
            self.cache_file.unlink()
        try:
            keyring.delete_password(KEYRING_SERVICE_NAME, self._cache_key)
        except KeyringError as exc:  # pragma: no cover - environment dependent
            logger.warning("Could not remove Graph tokens from keyring: %s", exc)
        self.cache = msal.SerializableTokenCache()
        self.app = self._build_app()
