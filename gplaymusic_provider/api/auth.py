"""
Handles authentication with the catalog service: the initial login, token
persistence, and cooldown-gated token refresh on authorization failures.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Optional, TypeVar

import aiohttp

from gplaymusic_provider.exceptions import (
    AuthenticationError,
    ConfigurationError,
    InitializationError,
    UnauthorizedError,
)
from gplaymusic_provider.models.config import ProviderConfig

if TYPE_CHECKING:
    from gplaymusic_provider.storage.config_manager import ConfigManager

    from .base import CatalogClient

log = logging.getLogger(__name__)

T = TypeVar("T")

TOKEN_ERRORS = (AuthenticationError, aiohttp.ClientError, asyncio.TimeoutError)


class SessionManager:
    """
    Owns the access token of one provider instance.

    The token is obtained lazily on first use, persisted through the config
    manager, and replaced in the client in place when the service rejects it.
    Replacements are rate limited: at most one token request per
    `REFRESH_COOLDOWN_SECONDS`.
    """

    REFRESH_COOLDOWN_SECONDS = 60.0

    def __init__(
        self,
        client: "CatalogClient",
        config: ProviderConfig,
        config_manager: Optional["ConfigManager"] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initializes the session manager.

        Args:
            client: The catalog client whose token is managed.
            config: Provider configuration holding credentials and the saved token.
            config_manager: Store used to persist or clear the token.
            clock: Monotonic time source used for the refresh cooldown.
        """
        self._client = client
        self._config = config
        self._config_manager = config_manager
        self._clock = clock

        self._token: Optional[str] = None
        self._last_token_fetched: Optional[float] = None
        self._lock = asyncio.Lock()

    @property
    def client(self) -> "CatalogClient":
        return self._client

    @property
    def token(self) -> Optional[str]:
        return self._token

    async def ensure_authenticated(self) -> str:
        """
        Returns the live token, logging in first if there is none yet.

        Raises:
            InitializationError: If neither the saved token nor the credentials
            yield a usable token.
        """
        if self._token:
            return self._token

        async with self._lock:
            if self._token:
                return self._token
            try:
                return await self._login()
            except TOKEN_ERRORS as e:
                raise InitializationError(
                    f"Logging into Google Play Music failed: {e}"
                ) from e

    async def refresh(self) -> str:
        """Exchanges the credentials for a new token, ignoring the cooldown."""
        async with self._lock:
            return await self._fetch_new_token()

    async def handle_unauthorized(self) -> bool:
        """
        Reacts to an authorization failure reported by a caller.

        Returns:
            True if a new token was installed and the caller should retry its
            operation once, False if the refresh is on cooldown or failed.
        """
        async with self._lock:
            if self._last_token_fetched is not None:
                elapsed = self._clock() - self._last_token_fetched
                if elapsed < self.REFRESH_COOLDOWN_SECONDS:
                    log.info(
                        "Token request on cooldown. Please wait "
                        f"{self.REFRESH_COOLDOWN_SECONDS - elapsed:.0f} seconds."
                    )
                    return False

            log.info("Authorization expired. Requesting new token.")
            try:
                await self._fetch_new_token()
            except TOKEN_ERRORS as e:
                log.error(
                    "[red]Exception while trying to generate new token. "
                    f"Unable to authenticate client: {e}[/red]"
                )
                return False
            return True

    async def run_authorized(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Runs `operation`, refreshing the token and retrying exactly once if the
        service rejects the current token.

        Raises:
            AuthenticationError: If the token could not be refreshed, or the
            retry was rejected as well.
        """
        await self.ensure_authenticated()
        try:
            return await operation()
        except UnauthorizedError as e:
            if not await self.handle_unauthorized():
                raise AuthenticationError(
                    "Authorization was rejected and the token could not be refreshed."
                ) from e

        try:
            return await operation()
        except UnauthorizedError as e:
            raise AuthenticationError(
                "Authorization was rejected again after refreshing the token."
            ) from e

    async def _login(self) -> str:
        saved_token = self._config.token
        if saved_token:
            log.info("Trying to login with existing token.")
            try:
                token = await self._client.exchange_existing_token(saved_token)
            except AuthenticationError as e:
                log.warning(
                    f"[yellow]Saved token was rejected ({e}). "
                    "Fetching new token.[/yellow]"
                )
                self._persist_token(None)
            else:
                self._client.change_token(token)
                self._token = token
                return token

        log.info("Fetching new token.")
        return await self._fetch_new_token()

    async def _fetch_new_token(self) -> str:
        token = await self._client.exchange_credentials_for_token(
            self._config.username, self._config.password, self._config.device_id
        )
        self._client.change_token(token)
        self._token = token
        self._last_token_fetched = self._clock()
        self._persist_token(token)
        return token

    def _persist_token(self, token: Optional[str]) -> None:
        self._config.token = token or ""
        if self._config_manager is None:
            return
        try:
            self._config_manager.update_values(token=token)
        except ConfigurationError as e:
            log.warning(f"Could not persist token: {e}")
