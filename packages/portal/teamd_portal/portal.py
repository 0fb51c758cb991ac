"""
Portal: the session, API client, instance selection and logout sync for one tab.
"""

from __future__ import annotations

from typing import Optional

import httpx
import structlog

from teamd_shared.schemas.users import TokenUser

from .browser import Tab
from .client import ApiError, TeamDClient
from .config import PortalConfig
from .instances import InstanceSelection
from .session import SessionMachine, SessionState, decode_claims, extract_handoff_token
from .sync import broadcast_logout, listen_for_logout

log = structlog.get_logger()


class Portal:
    """
    One portal page in one browser tab.

    Tokens arrive by login, by the `auth` handoff parameter, or from the tab's
    sessionStorage. A logout in any other tab ends this tab's session too.
    """

    def __init__(
        self,
        tab: Tab,
        config: Optional[PortalConfig] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.tab = tab
        self.config = config or PortalConfig()
        self.session = SessionMachine(tab.session_storage, source=self.config.source)
        self.client = TeamDClient(
            self.config.api.url,
            token_provider=lambda: self.session.token,
            on_unauthorized=self._on_unauthorized,
            verify_tls=self.config.api.verify_tls,
            request_timeout=self.config.api.request_timeout_seconds,
            transport=transport,
        )
        self.instances = InstanceSelection(self.client, tab.session_storage)
        self._stop_listening = None

    async def open(self) -> None:
        await self.client.open()
        self._stop_listening = listen_for_logout(
            self.tab,
            self._on_remote_logout,
            channel_name=self.config.sync.channel_name,
            storage_key=self.config.sync.storage_key,
        )

    async def close(self) -> None:
        if self._stop_listening:
            self._stop_listening()
            self._stop_listening = None
        await self.client.close()

    async def __aenter__(self) -> "Portal":
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def user(self) -> Optional[TokenUser]:
        return self.session.user

    async def bootstrap(self, url: str) -> str:
        """Pick up a handoff or stored token and verify it with the API.

        Returns the page URL with any handoff token stripped.
        """
        token, cleaned_url = extract_handoff_token(url)
        origin = "handoff"
        if token is None:
            token = self.session.stored_token()
            origin = "storage"
        if not token:
            return cleaned_url

        claims = decode_claims(token)
        if claims is None:
            log.info("portal.token_rejected", origin=origin, reason="expired or malformed")
            self.session.discard_stored()
            return cleaned_url

        self.session.token_detected(token, claims)
        try:
            user = await self.client.me()
        except ApiError as exc:
            log.info("portal.verification_failed", origin=origin, status=exc.status, code=exc.code)
            if self.session.state is SessionState.PENDING_VERIFICATION:
                self.session.verification_failed()
            return cleaned_url

        self.session.verified(user)
        log.info("portal.session_restored", origin=origin, email=user.email)
        await self.instances.refresh()
        return cleaned_url

    async def login(self, email: str) -> TokenUser:
        data = await self.client.login(email)
        user = TokenUser.model_validate(data.user.model_dump())
        self.session.login_succeeded(data.token, user)
        log.info("portal.login", email=user.email)
        await self.instances.refresh()
        return user

    async def logout(self) -> None:
        """End the session here and in every other tab."""
        try:
            await self.client.logout()
        except (ApiError, httpx.HTTPError):
            # Local logout proceeds even when the API is unreachable
            log.warning("portal.logout_request_failed", exc_info=True)
        self.session.logout()
        self.instances.clear()
        broadcast_logout(
            self.tab,
            self.config.source,
            channel_name=self.config.sync.channel_name,
            storage_key=self.config.sync.storage_key,
        )

    def _on_remote_logout(self, message: dict) -> None:
        if self.session.state is SessionState.ANONYMOUS:
            return
        log.info("portal.remote_logout", source=message.get("source"))
        self.session.remote_logout()
        self.instances.clear()

    def _on_unauthorized(self) -> None:
        # An authenticated session whose token the API no longer accepts
        if self.session.state is SessionState.AUTHENTICATED:
            log.info("portal.session_expired")
            self.session.logout()
            self.instances.clear()
