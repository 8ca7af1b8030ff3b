import asyncio
from typing import Any, Callable, Dict, Optional, Union

import httpx

from mip_core.errors import NetworkError, ServiceTimeoutError
from mip_core.logging import get_logger

logger = get_logger("mip.providers.http")

# Bearer token, or a callable returning the current one (refresh is handled by the auth layer).
TokenSource = Union[str, Callable[[], Optional[str]], None]


class BackendHttpClient:
    """
    Thin wrapper around httpx.AsyncClient for the interview backend.

    - Adds 'Authorization: Bearer <token>' to every request
    - Bounds every call with a total timeout
    - Classifies failures into ServiceTimeoutError / NetworkError
    """
    def __init__(
        self,
        base_url: str,
        token: TokenSource = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._token = token
        self._client = httpx.AsyncClient(base_url=base_url, transport=transport)

    async def __aenter__(self) -> "BackendHttpClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self) -> Dict[str, str]:
        token = self._token() if callable(self._token) else self._token
        if not token:
            logger.warning("No bearer token available, sending unauthenticated request")
            return {}
        return {"Authorization": f"Bearer {token}"}

    async def post(
        self,
        operation: str,
        path: str,
        *,
        timeout: float,
        json: Any = None,
        data: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        try:
            response = await asyncio.wait_for(
                self._client.post(
                    path,
                    json=json,
                    data=data,
                    files=files,
                    headers=self._headers(),
                    timeout=timeout,
                ),
                timeout=timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.error(f"{operation} timed out after {timeout}s")
            raise ServiceTimeoutError(operation, timeout) from e
        except httpx.HTTPError as e:
            logger.error(f"{operation} failed: {e!r}")
            raise NetworkError(operation, str(e) or type(e).__name__) from e

        logger.debug(f"{operation} -> HTTP {response.status_code}")
        return response

    @staticmethod
    def read_json(response: httpx.Response) -> Dict[str, Any]:
        """Best-effort JSON body; empty dict for non-JSON or non-object bodies."""
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}
