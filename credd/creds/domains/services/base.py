"""Host service interface shared by every credential store."""
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from ..errors import ProviderError, UnauthorizedError
from ..models import CredType, UploadStatus

logger = logging.getLogger(__name__)


class HostService(ABC):
    """Uploads credentials to one provider's store."""

    service_name = ""
    # Characters the provider rejects in credential names are replaced by "_".
    name_pattern = re.compile(r"[^A-Za-z0-9_]")
    uppercase_names = False

    def __init__(
        self,
        token: Optional[str],
        project_path: Optional[str],
        project_id: Optional[str] = None,
        server: Optional[str] = None,
        force: bool = False,
        timeout: float = 30.0,
    ):
        self.token = token
        self.project_path = project_path
        self.project_id = project_id
        self.server = server
        self.force = force
        self.timeout = timeout

    def get_project_path(self) -> Optional[str]:
        return self.project_path

    def get_project_id(self) -> Optional[str]:
        return self.project_id

    def credential_name(self, name: str) -> str:
        """Provider-safe form of ``name``."""
        safe = self.name_pattern.sub("_", name)
        return safe.upper() if self.uppercase_names else safe

    @abstractmethod
    async def upload_secret(self, name: str, value: str) -> UploadStatus:
        """Create the secret, or update it when ``force`` is set."""

    @abstractmethod
    async def upload_variable(self, name: str, value: str) -> UploadStatus:
        """Create the variable, or update it when ``force`` is set."""

    async def upload(self, cred_type: CredType, name: str, value: str) -> UploadStatus:
        if CredType(cred_type) == CredType.SECRET:
            return await self.upload_secret(name, value)
        return await self.upload_variable(name, value)

    async def close(self) -> None:
        pass

    async def __aenter__(self) -> "HostService":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(project_path={self.project_path!r}, force={self.force})"


class HttpHostService(HostService):
    """Host service talking to a REST API with a bearer token."""

    def __init__(self, *args, client: Optional[httpx.AsyncClient] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self._client = client
        self._owns_client = client is None

    @property
    @abstractmethod
    def base_url(self) -> str:
        """API root that request paths are appended to."""

    def default_headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-initialize client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """
        Send a request to the provider API.

        404 responses are returned so callers can treat them as "absent".

        Raises:
            UnauthorizedError: On 401 and 403
            ProviderError: On any other error status
        """
        url = f"{self.base_url}{path}"
        headers = self.default_headers()
        headers.update(kwargs.pop("headers", {}))
        response = await self.client.request(method, url, headers=headers, **kwargs)
        logger.debug(f"{self.service_name}: {method} {path} -> {response.status_code}")

        if response.status_code in (401, 403):
            raise UnauthorizedError(
                f"{self.service_name} rejected the token for {self.project_path} "
                f"({response.status_code} {response.reason_phrase})"
            )
        if response.status_code == 404:
            return response
        if response.status_code >= 400:
            raise ProviderError(
                f"{self.service_name}: {method} {path} failed with "
                f"{response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        return response

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
