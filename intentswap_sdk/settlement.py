"""
SettlementClient - HTTP client for the intent settlement backend.

The backend prices swaps, verifies escrow transactions, matches intents and
pays out on the target chain. It also proxies chain lookups (Octra transaction
status and epoch, Sepolia transaction status) so watchers need no direct RPC
access.
"""
import logging
import re
import time
import urllib.parse
from typing import Any, Callable, Dict, Optional

import requests
from pydantic import ValidationError
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .amounts import format_amount_safe, truncate_address
from .cancellation import CancellationToken
from .config import (
    DEFAULT_API_URL, DEFAULT_HISTORY_LIMIT, DEFAULT_SLIPPAGE_BPS,
    FULFILLMENT_POLL_INTERVAL, FULFILLMENT_TIMEOUT,
)
from .exceptions import FulfillmentTimeoutError, QuoteError, SettlementError
from .models import (
    Asset, IntentStatusResponse, LiquidityStatus, Quote, SubmitResult,
    SwapDirection, SwapHistory, TxLookupStatus, TxStatus,
)

_SCIENTIFIC_RE = re.compile(r"\d+\.?\d*e[+-]?\d+", re.IGNORECASE)

# direction -> (submit path, request body key)
_SUBMIT_ROUTES = {
    SwapDirection.OCT_TO_ETH: ("/swap/submit", "octraTxHash"),
    SwapDirection.ETH_TO_OCT: ("/swap/eth-to-oct", "sepoliaTxHash"),
}


def format_error_message(message: str) -> str:
    """Rewrite scientific notation in backend messages as plain decimals (5.9e-7 -> 0.00000059)."""
    return _SCIENTIFIC_RE.sub(lambda m: format_amount_safe(m.group(0)), message)


def _lookup_status(raw: Any) -> TxLookupStatus:
    if raw == "confirmed":
        return TxLookupStatus.CONFIRMED
    if raw == "failed":
        return TxLookupStatus.FAILED
    return TxLookupStatus.PENDING


class SettlementClient:
    """
    Client for the settlement backend.

    This client handles:
    1. Quotes and liquidity checks
    2. Submitting confirmed escrow transactions as intents
    3. Polling intents until they reach a terminal status
    4. Chain status lookups used by the confirmation watchers

    Only idempotent GET requests are retried at the transport level; a
    submission is sent exactly once.
    """

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        retry_count: int = 3,
        timeout: float = 30,
        logger: Optional[logging.Logger] = None,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize the SettlementClient

        Args:
            api_url: Base URL of the settlement backend
            retry_count: Number of transport-level retries for GET requests
            timeout: Timeout for HTTP requests in seconds
            logger: Optional logger instance to use for debug/info logging
            session: Optional preconfigured requests session
            clock: Monotonic clock used for fulfillment timeouts

        Raises:
            ValueError: If the URL doesn't use https (unless it's localhost/127.0.0.1)
        """
        parsed = urllib.parse.urlparse(api_url)
        host = parsed.hostname or ""
        is_local = host in ("localhost", "127.0.0.1")
        if parsed.scheme != "https" and not is_local:
            raise ValueError(f"api_url must use https:// for security (got: {parsed.scheme}://)")

        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)

        if session is None:
            session = requests.Session()
            retries = Retry(
                total=retry_count,
                backoff_factor=0.5,
                status_forcelist=[502, 503, 504],
                allowed_methods=["GET"],
                raise_on_status=False,
            )
            session.mount("http://", HTTPAdapter(max_retries=retries))
            session.mount("https://", HTTPAdapter(max_retries=retries))
        self.session = session

    # ------------------------------------------------------------------
    # transport helpers
    # ------------------------------------------------------------------

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.api_url}{path}"
        self.logger.debug(f"{method} {url}")
        try:
            return self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            self.logger.error(f"Request to {path} failed: {e}")
            raise SettlementError(f"Settlement API request failed: {e}")

    @staticmethod
    def _json(response: requests.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    def _error_message(self, response: requests.Response, default: str) -> str:
        body = self._json(response)
        message = body.get("error") or body.get("message") or default
        return format_error_message(str(message))

    # ------------------------------------------------------------------
    # quotes and liquidity
    # ------------------------------------------------------------------

    def get_quote(
        self,
        from_asset: Asset,
        to_asset: Asset,
        amount_in: Any,
        slippage_bps: int = DEFAULT_SLIPPAGE_BPS
    ) -> Quote:
        """
        Get a quote for a swap.

        Args:
            from_asset: Asset the user sends
            to_asset: Asset the user receives
            amount_in: Amount of ``from_asset``
            slippage_bps: Slippage tolerance in basis points

        Returns:
            The quote

        Raises:
            QuoteError: If the backend cannot quote the swap
        """
        from_asset, to_asset = Asset(from_asset), Asset(to_asset)
        params = {
            "from": from_asset.value,
            "to": to_asset.value,
            "amount": format_amount_safe(amount_in),
            "slippageBps": slippage_bps,
        }
        self.logger.info(f"GET /quote ({from_asset.value}->{to_asset.value}) amount={params['amount']} slippage={slippage_bps}")
        try:
            response = self._request("GET", "/quote", params=params)
        except SettlementError as e:
            raise QuoteError(str(e))
        if not response.ok:
            raise QuoteError(
                self._error_message(response, f"Quote failed: {response.status_code}"),
                status_code=response.status_code,
            )
        try:
            quote = Quote.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise QuoteError(f"Invalid quote response: {e}")
        self.logger.debug(f"Quote received: {quote.to_wire()}")
        return quote

    def check_liquidity(self) -> LiquidityStatus:
        """Get the backend's liquidity status for both directions."""
        response = self._request("GET", "/liquidity")
        if not response.ok:
            raise SettlementError("Failed to check liquidity", status_code=response.status_code)
        try:
            return LiquidityStatus.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise SettlementError(f"Invalid liquidity response: {e}")

    # ------------------------------------------------------------------
    # intents
    # ------------------------------------------------------------------

    def submit(self, direction: SwapDirection, source_tx_hash: str) -> SubmitResult:
        """
        Submit a confirmed escrow transaction as an intent.

        Only the transaction hash is sent; the backend fetches and verifies the
        transaction and its envelope from the source chain itself.

        Args:
            direction: Swap direction, selects the endpoint
            source_tx_hash: Escrow transaction hash on the source chain

        Returns:
            Submission result carrying the new intent ID

        Raises:
            SettlementError: On any non-success response; never retried
        """
        path, key = _SUBMIT_ROUTES[SwapDirection(direction)]
        self.logger.info(f"POST {path} {key}={truncate_address(source_tx_hash, 10, 6)}")
        response = self._request("POST", path, json={key: source_tx_hash})

        if not response.ok:
            message = self._error_message(response, f"Submit failed: {response.status_code}")
            self.logger.error(f"Intent submission rejected ({response.status_code}): {message}")
            raise SettlementError(message, status_code=response.status_code)

        try:
            result = SubmitResult.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise SettlementError(f"Invalid submit response: {e}", status_code=response.status_code)
        self.logger.info(f"Intent accepted: {result.intent_id} ({result.status})")
        return result

    def get_intent_status(self, intent_id: str) -> IntentStatusResponse:
        """
        Get the backend status of an intent.

        Raises:
            SettlementError: If the status cannot be fetched
        """
        response = self._request("GET", f"/swap/{urllib.parse.quote(intent_id, safe='')}")
        if not response.ok:
            raise SettlementError(
                self._error_message(response, f"Status check failed: {response.status_code}"),
                status_code=response.status_code,
            )
        try:
            return IntentStatusResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise SettlementError(f"Invalid status response: {e}")

    def poll_fulfillment(
        self,
        intent_id: str,
        on_status: Optional[Callable[[str], None]] = None,
        timeout: float = FULFILLMENT_TIMEOUT,
        interval: float = FULFILLMENT_POLL_INTERVAL,
        cancel: Optional[CancellationToken] = None
    ) -> IntentStatusResponse:
        """
        Poll an intent until it is FULFILLED, EXPIRED or REJECTED.

        Args:
            intent_id: Intent to poll
            on_status: Called with every observed status
            timeout: Maximum seconds to wait
            interval: Seconds between polls
            cancel: Cancellation token checked between polls

        Returns:
            The terminal status response

        Raises:
            FulfillmentTimeoutError: If no terminal status arrives in time
            SettlementError: If a status request fails
            SwapCancelledError: If the token is cancelled
        """
        cancel = cancel or CancellationToken()
        start = self.clock()
        self.logger.info(f"Polling intent {intent_id} for fulfillment (timeout={timeout}s, interval={interval}s)")

        while self.clock() - start < timeout:
            cancel.raise_if_cancelled()
            status = self.get_intent_status(intent_id)
            if on_status is not None:
                try:
                    on_status(status.status.value)
                except Exception as e:
                    self.logger.error(f"Status callback error: {e}")

            if status.status.is_terminal:
                self.logger.info(f"Intent {intent_id} final status: {status.status.value}, targetTxHash={status.target_tx_hash}")
                return status

            self.logger.debug(f"Intent {intent_id} status {status.status.value}, waiting")
            cancel.sleep(interval)

        self.logger.error(f"Timeout waiting for fulfillment of intent {intent_id}")
        raise FulfillmentTimeoutError("Timeout waiting for fulfillment")

    def fetch_swap_history(self, address: str, limit: int = DEFAULT_HISTORY_LIMIT) -> SwapHistory:
        """Fetch the backend's swap history for an address."""
        response = self._request("GET", f"/history/{urllib.parse.quote(address, safe='')}", params={"limit": limit})
        if not response.ok:
            raise SettlementError(
                self._error_message(response, f"Failed to fetch history: {response.status_code}"),
                status_code=response.status_code,
            )
        try:
            history = SwapHistory.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise SettlementError(f"Invalid history response: {e}")
        self.logger.debug(f"History for {truncate_address(address)}: {history.count} swaps")
        return history

    # ------------------------------------------------------------------
    # chain lookups
    # ------------------------------------------------------------------

    def get_octra_tx_status(self, tx_hash: str) -> TxStatus:
        """
        Look up an Octra transaction through the backend proxy.

        A non-success response means the transaction is not known yet.

        Raises:
            SettlementError: If the request itself fails
        """
        response = self._request("GET", f"/octra/tx/{tx_hash}")
        if not response.ok:
            self.logger.debug(f"Octra tx not found: {truncate_address(tx_hash, 10, 6)}")
            return TxStatus(found=False, status=TxLookupStatus.UNKNOWN)
        data = self._json(response)
        return TxStatus(found=True, status=_lookup_status(data.get("status")), epoch=data.get("epoch"))

    def get_current_epoch(self) -> Optional[int]:
        """
        Get the current Octra epoch, or None if the backend cannot tell.

        Raises:
            SettlementError: If the request itself fails
        """
        response = self._request("GET", "/octra/status")
        if not response.ok:
            self.logger.warning(f"Failed to get Octra status: {response.status_code}")
            return None
        data = self._json(response)
        epoch = data.get("current_epoch") or data.get("epoch")
        return int(epoch) if epoch is not None else None

    def get_sepolia_tx_status(self, tx_hash: str) -> TxStatus:
        """
        Look up a Sepolia transaction through the backend proxy.

        Raises:
            SettlementError: If the request itself fails
        """
        response = self._request("GET", f"/sepolia/tx/{tx_hash}/status")
        if not response.ok:
            return TxStatus(found=False, status=TxLookupStatus.UNKNOWN)
        data = self._json(response)
        found = bool(data.get("found"))
        status = _lookup_status(data.get("status")) if found else TxLookupStatus.UNKNOWN
        return TxStatus(found=found, status=status)

    def get_sepolia_balance(self, address: str) -> float:
        """
        Get the ETH balance of a Sepolia address.

        Raises:
            SettlementError: If the balance cannot be fetched
        """
        response = self._request("GET", f"/sepolia/balance/{address}")
        if not response.ok:
            raise SettlementError("Failed to get balance", status_code=response.status_code)
        return float(self._json(response).get("balance", 0))

    @property
    def octra(self) -> "OctraChainQuery":
        return OctraChainQuery(self)

    @property
    def sepolia(self) -> "SepoliaChainQuery":
        return SepoliaChainQuery(self)


class OctraChainQuery:
    """Octra lookups for ``EpochConfirmationWatcher``."""

    def __init__(self, client: SettlementClient):
        self.client = client

    def tx_status(self, tx_hash: str) -> TxStatus:
        return self.client.get_octra_tx_status(tx_hash)

    def current_epoch(self) -> Optional[int]:
        return self.client.get_current_epoch()


class SepoliaChainQuery:
    """Sepolia lookups for ``DirectStatusWatcher``."""

    def __init__(self, client: SettlementClient):
        self.client = client

    def tx_status(self, tx_hash: str) -> TxStatus:
        return self.client.get_sepolia_tx_status(tx_hash)
