"""
Dockmaster REST API Client Module
Handles all communication with the Dockmaster (DMEAPI) service-management API.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from dockmaster_sync.config_manager import ConfigManager
from dockmaster_sync.exceptions import AuthenticationError, UpstreamError
from dockmaster_sync.utils.helpers import safe_get
from dockmaster_sync.utils.logger import get_logger

logger = get_logger(__name__)

WORK_ORDERS_PATH = 'api/v1/Service/WorkOrders'


@dataclass(frozen=True)
class DockmasterSession:
    """Short-lived bearer token plus the system id every data call must carry."""

    auth_token: str
    system_id: str

    @property
    def headers(self) -> Dict[str, str]:
        return {
            'Authorization': f'Bearer {self.auth_token}',
            'X-DM_SYSTEM_ID': str(self.system_id),
        }


@dataclass
class Page:
    """One page of a paginated Dockmaster listing."""

    items: List[Dict] = field(default_factory=list)
    page: int = 1
    max_pages: int = 1


def resolve_envelope(payload: Any) -> List[Dict]:
    """
    Unwrap a Dockmaster list response.

    Depending on the endpoint the list arrives bare, under ``content`` or
    under ``data``. Anything else resolves to an empty list.
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ('content', 'data'):
            items = payload.get(key)
            if isinstance(items, list):
                return items
    return []


class DockmasterClient:
    """
    Dockmaster REST API client with rate limiting, retries and error handling.
    """

    def __init__(self, config: Dict = None):
        """Initialize Dockmaster client from configuration."""
        if config is None:
            config = ConfigManager().get_dockmaster_config()

        self.auth_url = config.get('auth_url', 'https://auth.dmeapi.com').rstrip('/')
        self.base_url = config.get('base_url', 'https://api.dmeapi.com').rstrip('/')
        self.timeout = config.get('timeout', 30)

        # Rate limiting
        self.requests_per_second = config.get('requests_per_second', 5)
        self.max_retries = config.get('max_retries', 3)
        self.retry_delay = config.get('retry_delay', 1)

        self._last_request_time = 0
        self._session = self._create_session()

        logger.info(f"Dockmaster client initialized for {self.base_url}")

    def _create_session(self) -> requests.Session:
        """Create requests session with retry logic."""
        session = requests.Session()

        session.headers.update({
            'Accept': 'application/json',
            'Content-Type': 'application/json'
        })

        # Final failed response is returned (not raised) so its status reaches UpstreamError
        retry_strategy = Retry(
            total=self.max_retries,
            backoff_factor=self.retry_delay,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=['GET', 'POST'],
            raise_on_status=False
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount('https://', adapter)
        session.mount('http://', adapter)

        return session

    def _rate_limit(self) -> None:
        """Apply rate limiting between requests."""
        if self.requests_per_second <= 0:
            return

        min_interval = 1.0 / self.requests_per_second
        elapsed = time.time() - self._last_request_time

        if elapsed < min_interval:
            time.sleep(min_interval - elapsed)

        self._last_request_time = time.time()

    def _make_request(
        self,
        method: str,
        url: str,
        auth: Optional[DockmasterSession] = None,
        params: Dict = None,
        json_data: Any = None
    ) -> Any:
        """
        Make HTTP request to Dockmaster.

        Args:
            method: HTTP method
            url: Absolute URL
            auth: Session whose headers are attached to the request
            params: Query parameters (URL-encoded by requests)
            json_data: JSON body data

        Returns:
            Response JSON

        Raises:
            UpstreamError: If request fails
        """
        self._rate_limit()

        try:
            response = self._session.request(
                method=method,
                url=url,
                params=params,
                json=json_data,
                headers=auth.headers if auth else None,
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Request to {url} failed: {e}")
            raise UpstreamError(f"Request failed: {str(e)}") from e

        if response.status_code >= 400:
            body = (response.text or '')[:1000]
            logger.debug(f"Dockmaster {method} {url} returned {response.status_code}: {body}")
            raise UpstreamError(
                f"Dockmaster API error {response.status_code}: {body}",
                response.status_code
            )

        if not response.text:
            return {}

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(f"Invalid JSON from {url}", response.status_code) from e

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}/{WORK_ORDERS_PATH}/{endpoint}"

    # ========================================
    # Authentication
    # ========================================

    def authenticate(self, username: str, password: str) -> DockmasterSession:
        """
        Exchange credentials for a bearer token and system id.

        Raises:
            AuthenticationError: If the exchange is rejected or the response is incomplete
        """
        try:
            data = self._make_request(
                'POST',
                f"{self.auth_url}/token",
                json_data={'UserName': username, 'Password': password}
            )
        except UpstreamError as e:
            raise AuthenticationError(
                f"Authentication failed: {e.status_code or e.message}",
                e.status_code
            ) from e

        auth_token = safe_get(data, 'authToken')
        system_id = safe_get(data, 'availableConnections', 0, 'systemId')

        if not auth_token or not system_id:
            raise AuthenticationError("Authentication response missing token or systemId")

        logger.info(f"Authenticated with Dockmaster, systemId: {system_id}")
        return DockmasterSession(auth_token=auth_token, system_id=str(system_id))

    # ========================================
    # Work Order Methods
    # ========================================

    def list_changed_work_orders(
        self,
        auth: DockmasterSession,
        last_update: str,
        page: int = 1,
        page_size: int = 100
    ) -> Page:
        """
        Fetch one page of work orders created or changed since ``last_update``.

        Args:
            auth: Authenticated session
            last_update: Lower bound in Dockmaster local time (``YYYY-MM-DDTHH:MM:SS.000``)
            page: 1-based page number
            page_size: Results per page
        """
        data = self._make_request(
            'GET',
            self._url('ListNewOrChanged'),
            auth=auth,
            params={'LastUpdate': last_update, 'Page': page, 'PageSize': page_size}
        )
        return Page(
            items=resolve_envelope(data),
            page=page,
            max_pages=int(safe_get(data, 'maxPages', default=1) or 1)
        )

    def list_time_entries(
        self,
        auth: DockmasterSession,
        start_date: str,
        end_date: str,
        page: int = 1,
        page_size: int = 100,
        detail: bool = True
    ) -> Page:
        """Fetch one page of labor time entries recorded between two local timestamps."""
        data = self._make_request(
            'GET',
            self._url('ListTimeEntry'),
            auth=auth,
            params={
                'StartDate': start_date,
                'EndDate': end_date,
                'Page': page,
                'PageSize': page_size,
                'Detail': 'true' if detail else 'false'
            }
        )
        return Page(
            items=resolve_envelope(data),
            page=page,
            max_pages=int(safe_get(data, 'maxPages', default=1) or 1)
        )

    def list_customer_work_orders(
        self,
        auth: DockmasterSession,
        customer_id: str,
        status: str = 'O'
    ) -> List[Dict]:
        """List a customer's work orders (summary only, no boat id) filtered by status."""
        data = self._make_request(
            'GET',
            self._url('ListForCustomer'),
            auth=auth,
            params={'CustId': customer_id, 'Status': status}
        )
        return resolve_envelope(data)

    def retrieve_work_orders(
        self,
        auth: DockmasterSession,
        work_order_ids: List[str],
        detail: bool = True
    ) -> List[Dict]:
        """Batch-retrieve full work order details, operations included, in one call."""
        data = self._make_request(
            'POST',
            self._url('RetrieveList'),
            auth=auth,
            json_data={'woIds': list(work_order_ids), 'detail': detail}
        )
        return resolve_envelope(data)
