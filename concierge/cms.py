"""
concierge/cms.py
----------------
Knowledge-base source backed by a Webflow CMS v2 collection.

Each collection item carries the guide fields "Question" (plain text),
"Answer" (rich text) and "Keywords / Variations" (comma-separated plain
text) under `fieldData`. This module only fetches raw items; turning them
into KBEntry objects is the job of concierge/knowledge_base.py.
"""

from typing import Any, Dict, List

from concierge._http import HTTPStatusError, api_request
from concierge.config import Settings
from concierge.errors import SourceUnavailable
from concierge.logging_config import get_logger

log = get_logger(__name__)

PAGE_SIZE = 100


class WebflowSource:
    """Fetches every item of the configured collection, page by page."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def _check_credentials(self) -> None:
        s = self.settings
        if not (s.webflow_token and s.webflow_site_id and s.webflow_collection_id):
            raise SourceUnavailable("Missing WEBFLOW_* env vars.")

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization":     f"Bearer {self.settings.webflow_token}",
            "x-webflow-site-id": self.settings.webflow_site_id,
        }

    def _fetch_page(self, offset: int) -> Dict[str, Any]:
        url = (
            f"{self.settings.webflow_base_url}/collections/"
            f"{self.settings.webflow_collection_id}/items"
            f"?limit={PAGE_SIZE}&offset={offset}"
        )
        try:
            page = api_request(
                url,
                method="GET",
                headers=self._headers(),
                timeout=self.settings.http_timeout,
            )
        except HTTPStatusError as exc:
            raise SourceUnavailable(
                f"Webflow fetch failed: {exc.status} {exc.body[:300]}"
            ) from exc
        except (ConnectionError, RuntimeError) as exc:
            raise SourceUnavailable(f"Webflow fetch failed: {exc}") from exc

        if not isinstance(page, dict) or not isinstance(page.get("items", []), list):
            raise SourceUnavailable("Webflow response has no 'items' list.")
        return page

    def fetch_records(self) -> List[Dict[str, Any]]:
        """
        Returns every raw item of the collection.

        Raises:
            SourceUnavailable: On missing credentials, transport errors,
                               non-2xx responses or malformed payloads.
        """
        self._check_credentials()

        records: List[Dict[str, Any]] = []
        offset = 0
        while True:
            page  = self._fetch_page(offset)
            items = page.get("items") or []
            records.extend(items)

            total = (page.get("pagination") or {}).get("total")
            if not items or not isinstance(total, int) or len(records) >= total:
                break
            offset += len(items)

        log.info("Fetched %d record(s) from Webflow", len(records))
        return records

    __call__ = fetch_records
