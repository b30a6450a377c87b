import logging
from datetime import datetime
from typing import Any, Dict, Optional

import aiohttp

from backup_scheduler.domain.history import BackupHistory
from backup_scheduler.domain.job import BackupJob
from backup_scheduler.scheduler import JobScheduler

logger = logging.getLogger(__name__)


class WebhookNotifier:
    """
    Posts a JSON notification to a URL whenever a scheduled backup finishes or fails.

    Delivery is best effort: errors are logged and never reach the scheduler.
    """

    def __init__(self, url: str, timeout: float = 10.0, headers: Optional[Dict[str, str]] = None):
        self.url = url
        self.timeout = timeout
        self.headers: Dict[str, str] = headers or {}

    def attach(self, scheduler: JobScheduler) -> None:
        scheduler.on_backup_completed.append(self.on_backup_completed)
        scheduler.on_backup_failed.append(self.on_backup_failed)

    async def on_backup_completed(self, history: BackupHistory) -> bool:
        payload = {
            "event": "backup_completed",
            "job_id": history.job_id,
            "job_name": history.job_name,
            "status": history.status.value,
            "history": history.model_dump(mode="json"),
            "timestamp": datetime.now().isoformat(),
        }
        return await self._post(payload)

    async def on_backup_failed(self, job: BackupJob, error: BaseException) -> bool:
        payload = {
            "event": "backup_failed",
            "job_id": job.id,
            "job_name": job.name,
            "error": str(error),
            "timestamp": datetime.now().isoformat(),
        }
        return await self._post(payload)

    async def _post(self, payload: Dict[str, Any]) -> bool:
        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout)) as session:
                async with session.post(self.url, json=payload, headers=self.headers) as response:
                    if 200 <= response.status < 300:
                        logger.info(f"Webhook sent for job {payload['job_id']} (status={response.status})")
                        return True
                    body = await response.text()
                    logger.warning(f"Webhook failed for job {payload['job_id']}: HTTP {response.status}: {body[:200]}")
                    return False
        except Exception as e:
            logger.warning(f"Webhook error for job {payload['job_id']}: {e}")
            return False
