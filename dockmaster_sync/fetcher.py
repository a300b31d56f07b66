"""
Work Order Fetcher Module
Pulls changed work orders and time entries for a window, and full details for a customer's boat.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from dockmaster_sync.config_manager import SyncSettings
from dockmaster_sync.dockmaster_client import DockmasterClient, DockmasterSession
from dockmaster_sync.exceptions import UpstreamError
from dockmaster_sync.utils.helpers import format_api_timestamp
from dockmaster_sync.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class FetchResult:
    """Items collected from a paginated listing plus how much of it was read."""

    items: List[Dict] = field(default_factory=list)
    pages_fetched: int = 0
    pages_available: int = 0
    error: Optional[str] = None

    @property
    def truncated(self) -> bool:
        return self.pages_available > self.pages_fetched


class WorkOrderFetcher:
    """
    Fetch orchestration on top of DockmasterClient.

    Window listings fail open: an UpstreamError is logged and whatever was
    collected before it (usually nothing) is returned.
    """

    def __init__(self, client: DockmasterClient, settings: SyncSettings):
        self.client = client
        self.settings = settings

    def _collect_pages(self, label: str, fetch_page, max_pages: Optional[int]) -> FetchResult:
        result = FetchResult()
        page_number = 1

        while True:
            try:
                page = fetch_page(page_number)
            except UpstreamError as e:
                logger.error(f"Failed to fetch {label} page {page_number}: {e.status_code or e.message}")
                result.error = e.message
                break

            result.items.extend(page.items)
            result.pages_fetched = page_number
            result.pages_available = max(page.max_pages, page_number)

            if page_number >= page.max_pages:
                break
            if max_pages is not None and page_number >= max_pages:
                logger.warning(
                    f"{label}: {page.max_pages} pages available, only processed {page_number}"
                )
                break
            page_number += 1

        logger.info(f"{label}: {len(result.items)} records from {result.pages_fetched} page(s)")
        return result

    def fetch_changed_work_orders(
        self,
        auth: DockmasterSession,
        since: datetime,
        max_pages: Optional[int] = 1
    ) -> FetchResult:
        """
        Work orders created or changed since ``since``.

        Args:
            auth: Authenticated session
            since: Window start (converted to Dockmaster local time)
            max_pages: Page cap; None reads every page
        """
        last_update = format_api_timestamp(since, self.settings.timezone)
        logger.info(f"Fetching changed work orders since {last_update}")

        return self._collect_pages(
            'Changed work orders',
            lambda page: self.client.list_changed_work_orders(
                auth, last_update, page=page, page_size=self.settings.page_size
            ),
            max_pages
        )

    def fetch_time_entries(
        self,
        auth: DockmasterSession,
        start: datetime,
        end: datetime,
        max_pages: Optional[int] = 1
    ) -> FetchResult:
        """Labor time entries recorded between ``start`` and ``end``."""
        start_date = format_api_timestamp(start, self.settings.timezone)
        end_date = format_api_timestamp(end, self.settings.timezone)
        logger.info(f"Fetching time entries from {start_date} to {end_date}")

        return self._collect_pages(
            'Time entries',
            lambda page: self.client.list_time_entries(
                auth, start_date, end_date, page=page, page_size=self.settings.page_size
            ),
            max_pages
        )

    def fetch_for_customer_boat(
        self,
        auth: DockmasterSession,
        customer_id: str,
        boat_id: Optional[str] = None
    ) -> Optional[List[Dict]]:
        """
        Full details of a customer's open work orders for one boat.

        The customer listing carries no boat id, so every open work order is
        batch-retrieved and then filtered on the trimmed ``boatId``.

        Returns:
            Matching detailed work orders, or None when the customer has no
            open work orders at all

        Raises:
            UpstreamError: If the list or batch-retrieve call fails
        """
        listed = self.client.list_customer_work_orders(auth, customer_id, status='O')
        logger.info(f"Customer {customer_id} has {len(listed)} open work orders")

        if not listed:
            return None

        work_order_ids = [wo.get('id') for wo in listed if isinstance(wo, dict) and wo.get('id') is not None]
        details = self.client.retrieve_work_orders(auth, work_order_ids, detail=True)
        logger.info(f"Retrieved {len(details)} work orders with details")

        if not boat_id:
            return details

        target = str(boat_id).strip()
        matches = []
        for detail in details:
            if not isinstance(detail, dict):
                continue
            detail_boat_id = str(detail.get('boatId') or '').strip()
            if detail_boat_id != target:
                logger.debug(f"Skipping WO {detail.get('id')}: boat {detail_boat_id!r} != {target!r}")
                continue
            matches.append(detail)

        logger.info(f"{len(matches)} work orders match boat {target}")
        return matches
