"""
HTTP client for the Team D API.

Unwraps the `{success, data, error}` envelope: successful calls return the
parsed `data`, failures raise ApiError carrying the server's message and code.
"""

from __future__ import annotations

import inspect
from typing import Any, Awaitable, Callable, Optional, Union

import httpx
import structlog

from teamd_shared.schemas.common import HealthData
from teamd_shared.schemas.instances import InstanceResponse
from teamd_shared.schemas.users import LoginData, TokenUser, UserResponse

log = structlog.get_logger()

TokenProvider = Callable[[], Optional[str]]
UnauthorizedHandler = Callable[[], Union[None, Awaitable[None]]]


class ApiError(Exception):
    """A request the API answered with `success: false` (or not at all sensibly)."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status: Optional[int] = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = status
        self.details = details

    def __repr__(self) -> str:
        return f"ApiError({self.message!r}, code={self.code!r}, status={self.status!r})"


class TeamDClient:
    """Async client for the Team D REST API."""

    def __init__(
        self,
        base_url: str,
        *,
        token_provider: Optional[TokenProvider] = None,
        on_unauthorized: Optional[UnauthorizedHandler] = None,
        verify_tls: bool = True,
        request_timeout: int = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._token_provider = token_provider
        self._on_unauthorized = on_unauthorized
        self._verify_tls = verify_tls
        self._request_timeout = request_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def open(self) -> None:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._request_timeout),
            verify=self._verify_tls,
            transport=self._transport,
        )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "TeamDClient":
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        token: Optional[str] = None,
    ) -> Any:
        if self._client is None:
            raise RuntimeError("TeamDClient is not open; call open() first")
        headers = {}
        token = token or (self._token_provider() if self._token_provider else None)
        if token:
            headers["Authorization"] = f"Bearer {token}"

        resp = await self._client.request(method, path, json=json, headers=headers)

        if resp.status_code == 401 and self._on_unauthorized is not None:
            result = self._on_unauthorized()
            if inspect.isawaitable(result):
                await result

        try:
            body = resp.json()
        except ValueError:
            log.error("client.invalid_response", method=method, path=path, status=resp.status_code)
            raise ApiError(
                f"Unexpected response from API ({resp.status_code})", status=resp.status_code
            )

        if not isinstance(body, dict) or not body.get("success"):
            error = (body.get("error") if isinstance(body, dict) else None) or {}
            raise ApiError(
                error.get("message") or resp.reason_phrase or "Request failed",
                code=error.get("code"),
                status=resp.status_code,
                details=error.get("details"),
            )
        return body.get("data")

    # --- Auth ---

    async def login(self, email: str) -> LoginData:
        data = await self._request("POST", "/auth/login", json={"email": email})
        return LoginData.model_validate(data)

    async def logout(self) -> None:
        await self._request("POST", "/auth/logout")

    async def me(self, token: Optional[str] = None) -> TokenUser:
        data = await self._request("GET", "/auth/me", token=token)
        return TokenUser.model_validate(data["user"])

    async def token(self) -> str:
        data = await self._request("GET", "/auth/token")
        return data["token"]

    # --- Instances ---

    async def list_instances(self) -> list[InstanceResponse]:
        data = await self._request("GET", "/instances")
        return [InstanceResponse.model_validate(i) for i in data["instances"]]

    async def get_instance(self, instance_id: int) -> InstanceResponse:
        data = await self._request("GET", f"/instances/{instance_id}")
        return InstanceResponse.model_validate(data["instance"])

    # --- Users ---

    async def profile(self) -> UserResponse:
        data = await self._request("GET", "/users/me/profile")
        return UserResponse.model_validate(data["profile"])

    # --- System ---

    async def health(self) -> HealthData:
        data = await self._request("GET", "/health")
        return HealthData.model_validate(data)
