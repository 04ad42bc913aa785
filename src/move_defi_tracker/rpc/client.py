"""Async REST client for the Movement ledger API."""

import logging
from typing import Any

import httpx

from move_defi_tracker.core.models import Resource
from move_defi_tracker.rpc.retry import RetryConfig, with_retry

logger = logging.getLogger(__name__)

CURSOR_HEADER = "x-aptos-cursor"
PAGE_LIMIT = 9999
MAX_PAGES = 50


class LedgerAPIError(Exception):
    """Exception raised for ledger API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AccountNotFoundError(LedgerAPIError):
    """The account does not exist or holds no resources."""


class LedgerNetworkError(LedgerAPIError):
    """Transport failure or timeout while talking to the ledger."""


class MovementClient:
    """
    Client for the Movement fullnode REST API.

    Fetches account resources and evaluates read-only view functions.
    Transport failures are retried with exponential backoff; HTTP error
    responses are not.

    Parameters
    ----------
    rpc_url : str
        Fullnode base URL (e.g., 'https://mainnet.movementnetwork.xyz/v1')
    timeout : float
        Request timeout in seconds
    retry_config : RetryConfig | None
        Retry behavior for transport failures
    transport : httpx.AsyncBaseTransport | None
        Custom transport (used by tests)

    """

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 30.0,
        retry_config: RetryConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.rpc_url = rpc_url.rstrip("/")
        self.retry_config = retry_config or RetryConfig(
            max_retries=2,
            base_delay=0.5,
            max_delay=5.0,
            retry_on=(LedgerNetworkError,),
        )
        self.client = httpx.AsyncClient(
            base_url=self.rpc_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )
        self._send = with_retry(self.retry_config)(self._send_once)

    async def _send_once(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            msg = f"Request timeout: {e}"
            raise LedgerNetworkError(msg) from e
        except httpx.TransportError as e:
            msg = f"Network error: {e}"
            raise LedgerNetworkError(msg) from e

        if response.status_code == 404:
            msg = f"Not found: {path}"
            raise AccountNotFoundError(msg, status_code=404)
        if response.is_error:
            msg = f"HTTP error {response.status_code}: {response.text[:200]}"
            raise LedgerAPIError(msg, status_code=response.status_code)
        return response

    async def get_account_resources(self, address: str) -> list[Resource]:
        """
        Fetch every resource stored under an account.

        Follows the cursor header until the ledger reports no further page.

        Parameters
        ----------
        address : str
            Normalized account address

        Returns
        -------
        list[Resource]
            Resources in ledger order

        Raises
        ------
        AccountNotFoundError
            If the account does not exist
        LedgerNetworkError
            If the ledger is unreachable after retries
        LedgerAPIError
            For any other error response

        """
        resources: list[Resource] = []
        params: dict[str, Any] = {"limit": PAGE_LIMIT}

        for _ in range(MAX_PAGES):
            response = await self._send("GET", f"/accounts/{address}/resources", params=params)
            payload = response.json()
            if not isinstance(payload, list):
                msg = f"Unexpected resources payload: {type(payload).__name__}"
                raise LedgerAPIError(msg)

            resources.extend(Resource.model_validate(item) for item in payload if isinstance(item, dict))

            cursor = response.headers.get(CURSOR_HEADER)
            if not cursor:
                break
            params = {"limit": PAGE_LIMIT, "start": cursor}
        else:
            logger.warning("Stopped paging resources for %s after %d pages", address, MAX_PAGES)

        logger.debug("Fetched %d resources for %s", len(resources), address)
        return resources

    async def view(
        self,
        function: str,
        type_arguments: list[str],
        arguments: list[Any],
    ) -> list[Any]:
        """
        Evaluate a read-only view function.

        Parameters
        ----------
        function : str
            Fully qualified function (e.g., '0x1::coin::balance')
        type_arguments : list[str]
            Generic type arguments
        arguments : list[Any]
            Function arguments

        Returns
        -------
        list[Any]
            Returned values

        """
        body = {
            "function": function,
            "type_arguments": type_arguments,
            "arguments": arguments,
        }
        response = await self._send("POST", "/view", json=body)
        result = response.json()
        if not isinstance(result, list):
            msg = f"Unexpected view result for {function}"
            raise LedgerAPIError(msg)
        return result

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "MovementClient":
        return self

    async def __aexit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        await self.close()
