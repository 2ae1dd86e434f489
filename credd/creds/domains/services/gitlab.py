"""GitLab CI/CD variables."""
import logging
import re
from typing import Any, Dict
from urllib.parse import quote

from ..errors import InvalidConfigError, ProviderError
from ..models import UploadStatus
from .base import HttpHostService

logger = logging.getLogger(__name__)

# GitLab masks only single-line values of 8+ characters from this alphabet.
_MASKABLE = re.compile(r"^[A-Za-z0-9+/=@:.~_\-]{8,}$")


def is_maskable(value: str) -> bool:
    return bool(_MASKABLE.match(value))


class GitlabService(HttpHostService):
    """
    Project-level CI/CD variables on gitlab.com or a self-hosted instance.

    GitLab has no separate secret store: secrets become masked variables
    when the value allows it.
    """

    service_name = "gitlab"

    def __init__(self, *args, default_server: str = "gitlab.com", **kwargs):
        super().__init__(*args, **kwargs)
        if not self.project_id and not self.project_path:
            raise InvalidConfigError("gitlab service needs projectId or projectPath")
        self._default_server = default_server

    @property
    def base_url(self) -> str:
        server = (self.server or self._default_server).rstrip("/")
        if not server.startswith(("http://", "https://")):
            server = f"https://{server}"
        return f"{server}/api/v4"

    @property
    def project_ref(self) -> str:
        if self.project_id:
            return quote(str(self.project_id), safe="")
        return quote(self.project_path, safe="")

    async def _upsert(self, key: str, value: str, masked: bool) -> UploadStatus:
        url = f"/projects/{self.project_ref}/variables"
        existing = await self.request("GET", f"{url}/{key}")
        payload: Dict[str, Any] = {"value": value, "masked": masked, "raw": True}

        if existing.status_code == 404:
            response = await self.request("POST", url, json={"key": key, **payload})
            if response.status_code == 404:
                raise ProviderError(f"gitlab: project {self.project_ref} not found", status_code=404)
            return UploadStatus.CREATED

        if not self.force:
            logger.info(f"gitlab: variable {key} exists in {self.project_ref}, skipping")
            return UploadStatus.SKIPPED

        await self.request("PUT", f"{url}/{key}", json=payload)
        return UploadStatus.UPDATED

    async def upload_secret(self, name: str, value: str) -> UploadStatus:
        key = self.credential_name(name)
        masked = is_maskable(value)
        if not masked:
            logger.warning(
                f"gitlab: secret {key} cannot be masked (multi-line, short or special characters); "
                f"storing it unmasked"
            )
        status = await self._upsert(key, value, masked=masked)
        logger.info(f"gitlab: secret {key} {status.value} in {self.project_ref}")
        return status

    async def upload_variable(self, name: str, value: str) -> UploadStatus:
        key = self.credential_name(name)
        status = await self._upsert(key, value, masked=False)
        logger.info(f"gitlab: variable {key} {status.value} in {self.project_ref}")
        return status
