import logging
from typing import Any, Dict, Optional

import aiohttp

from linkengine.core.config import settings
from linkengine.schemas.scrape_result import ScrapeResult

logger = logging.getLogger(__name__)

class ApiCallbackClient:
    """Worker-side client for the API callbacks.

    Every call is best effort: failures are logged and reported as ``False``,
    never raised, so a job's outcome depends only on its own scrape.
    """

    def __init__(
        self,
        base_url: str = settings.API_URL,
        api_prefix: str = settings.API_V1_STR,
        timeout: int = settings.CALLBACK_TIMEOUT,
    ):
        self.base_url = base_url.rstrip('/')
        self.api_prefix = api_prefix
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "ApiCallbackClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def _send(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Optional[Any]:
        url = f"{self.base_url}{path}"
        async with self._get_session().request(method, url, json=payload) as response:
            if response.status < 200 or response.status >= 300:
                body = await response.text()
                raise RuntimeError(f"HTTP {response.status}: {body[:200]}")
            if response.content_type == 'application/json':
                return await response.json()
            return None

    async def report_job_status(
        self,
        job_id: int,
        status: str,
        result: Optional[ScrapeResult] = None,
        error: Optional[str] = None,
    ) -> bool:
        payload: Dict[str, Any] = {'status': status}
        if result is not None:
            payload['result'] = result.model_dump(by_alias=True)
        if error is not None:
            payload['error'] = error

        try:
            await self._send('PATCH', f"{self.api_prefix}/jobs/{job_id}", payload)
            return True
        except Exception as e:
            logger.warning(f"Failed to report status {status} for job {job_id}: {str(e)}")
            return False

    async def update_link_after_scraping(
        self,
        link_id: int,
        job_id: int,
        result: Optional[ScrapeResult] = None,
        error: Optional[str] = None,
        duration: Optional[float] = None,
    ) -> bool:
        payload: Dict[str, Any] = {'jobId': job_id}
        if result is not None:
            payload['result'] = result.model_dump(by_alias=True)
        if error is not None:
            payload['error'] = error
        if duration is not None:
            payload['duration'] = duration

        try:
            await self._send('POST', f"{self.api_prefix}/links/{link_id}/update-scrape", payload)
            logger.info(f"Updated link {link_id} after scraping")
            return True
        except Exception as e:
            logger.warning(f"Failed to update link {link_id} after scraping: {str(e)}")
            return False

    async def discover_links(self, source_url: str, result: ScrapeResult) -> bool:
        if not result.links:
            return False

        payload = {
            'sourceUrl': source_url,
            'content': {'content': result.content, 'links': result.links},
            'options': {
                'maxLinks': settings.DISCOVERY_MAX_LINKS,
                'minConfidence': settings.DISCOVERY_MIN_CONFIDENCE,
            },
        }
        try:
            await self._send('POST', f"{self.api_prefix}/links/discover", payload)
            logger.info(f"Discovered links from {source_url}")
            return True
        except Exception as e:
            logger.warning(f"Failed to discover links from {source_url}: {str(e)}")
            return False

    async def ingest(self, link_id: int) -> bool:
        """Knowledge-base ingestion, then vault ingestion; each failure is independent"""
        succeeded = True
        for name, template in (('knowledge base', settings.KB_INGEST_PATH), ('vault', settings.VAULT_INGEST_PATH)):
            try:
                await self._send('POST', template.format(link_id=link_id))
                logger.info(f"Auto-ingested link {link_id} into {name}")
            except Exception as e:
                succeeded = False
                logger.warning(f"Auto-ingestion into {name} failed for link {link_id}: {str(e)}")
        return succeeded
