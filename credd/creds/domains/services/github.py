"""GitHub Actions secrets and variables."""
import base64
import logging
from typing import Dict, Optional, Tuple

from nacl import encoding, public

from ..errors import InvalidConfigError, ProviderError
from ..models import UploadStatus
from .base import HttpHostService

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"


def encrypt_secret(public_key: str, value: str) -> str:
    """Seal ``value`` with the repository public key (libsodium sealed box)."""
    key = public.PublicKey(public_key.encode("utf-8"), encoding.Base64Encoder())
    sealed = public.SealedBox(key).encrypt(value.encode("utf-8"))
    return base64.b64encode(sealed).decode("utf-8")


class GithubService(HttpHostService):
    """
    Repository-level Actions secrets and variables.

    ``project_path`` is ``owner/repo``. ``server`` selects a GitHub Enterprise
    host (``https://<server>/api/v3``).
    """

    service_name = "github"
    uppercase_names = True

    def __init__(self, *args, api_url: str = "https://api.github.com", **kwargs):
        super().__init__(*args, **kwargs)
        if not self.project_path or "/" not in self.project_path:
            raise InvalidConfigError(
                f"github service needs projectPath as 'owner/repo', got {self.project_path!r}"
            )
        self._api_url = api_url
        self._public_key: Optional[Tuple[str, str]] = None

    @property
    def base_url(self) -> str:
        if not self.server or self.server in ("github.com", "api.github.com"):
            return self._api_url.rstrip("/")
        server = self.server.rstrip("/")
        if not server.startswith(("http://", "https://")):
            server = f"https://{server}"
        return f"{server}/api/v3"

    def default_headers(self) -> Dict[str, str]:
        headers = super().default_headers()
        headers["Accept"] = "application/vnd.github+json"
        headers["X-GitHub-Api-Version"] = API_VERSION
        return headers

    @property
    def repo_url(self) -> str:
        return f"/repos/{self.project_path}"

    async def get_public_key(self) -> Tuple[str, str]:
        """Return ``(key_id, key)`` of the repository, fetched once per service."""
        if self._public_key is None:
            response = await self.request("GET", f"{self.repo_url}/actions/secrets/public-key")
            if response.status_code == 404:
                raise ProviderError(
                    f"github: repository {self.project_path} not found or Actions disabled",
                    status_code=404,
                )
            data = response.json()
            self._public_key = (data["key_id"], data["key"])
        return self._public_key

    async def upload_secret(self, name: str, value: str) -> UploadStatus:
        name = self.credential_name(name)
        existing = await self.request("GET", f"{self.repo_url}/actions/secrets/{name}")
        exists = existing.status_code != 404
        if exists and not self.force:
            logger.info(f"github: secret {name} exists in {self.project_path}, skipping")
            return UploadStatus.SKIPPED

        key_id, key = await self.get_public_key()
        response = await self.request(
            "PUT",
            f"{self.repo_url}/actions/secrets/{name}",
            json={"encrypted_value": encrypt_secret(key, value), "key_id": key_id},
        )
        if response.status_code == 404:
            raise ProviderError(f"github: repository {self.project_path} not found", status_code=404)
        status = UploadStatus.CREATED if response.status_code == 201 else UploadStatus.UPDATED
        logger.info(f"github: secret {name} {status.value} in {self.project_path}")
        return status

    async def upload_variable(self, name: str, value: str) -> UploadStatus:
        name = self.credential_name(name)
        existing = await self.request("GET", f"{self.repo_url}/actions/variables/{name}")
        if existing.status_code == 404:
            response = await self.request(
                "POST",
                f"{self.repo_url}/actions/variables",
                json={"name": name, "value": value},
            )
            if response.status_code == 404:
                raise ProviderError(f"github: repository {self.project_path} not found", status_code=404)
            logger.info(f"github: variable {name} created in {self.project_path}")
            return UploadStatus.CREATED

        if not self.force:
            logger.info(f"github: variable {name} exists in {self.project_path}, skipping")
            return UploadStatus.SKIPPED

        await self.request(
            "PATCH",
            f"{self.repo_url}/actions/variables/{name}",
            json={"name": name, "value": value},
        )
        logger.info(f"github: variable {name} updated in {self.project_path}")
        return UploadStatus.UPDATED
