"""GCP Secret Manager host service."""
import asyncio
import logging
import os
import re
from typing import Optional

from google.api_core import exceptions as gcp_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import secretmanager

from ..errors import InvalidConfigError, OperationNotImplementedError, ProviderError, UnauthorizedError
from ..models import UploadStatus
from .base import HostService

logger = logging.getLogger(__name__)


class GcpService(HostService):
    """
    Secrets in GCP Secret Manager.

    ``project_id`` is the GCP project. ``token`` may point to a service
    account JSON file; otherwise application default credentials are used.
    Secret Manager has no plain variables.
    """

    service_name = "gcp"
    name_pattern = re.compile(r"[^A-Za-z0-9_-]")

    def __init__(self, *args, client: Optional[secretmanager.SecretManagerServiceClient] = None, **kwargs):
        super().__init__(*args, **kwargs)
        if not self.project_id:
            raise InvalidConfigError("gcp service needs projectId (the GCP project ID)")
        self._client = client

    @property
    def client(self) -> secretmanager.SecretManagerServiceClient:
        """Lazy-initialize client."""
        if self._client is None:
            if self.token and os.path.isfile(self.token):
                logger.debug(f"gcp: using service account file {self.token}")
                self._client = secretmanager.SecretManagerServiceClient.from_service_account_file(self.token)
            else:
                self._client = secretmanager.SecretManagerServiceClient()
        return self._client

    def _upload_secret_sync(self, secret_id: str, value: str) -> UploadStatus:
        parent = f"projects/{self.project_id}"
        name = f"{parent}/secrets/{secret_id}"
        try:
            try:
                self.client.get_secret(request={"name": name})
                exists = True
            except gcp_exceptions.NotFound:
                exists = False

            if exists and not self.force:
                logger.info(f"gcp: secret {secret_id} exists in {self.project_id}, skipping")
                return UploadStatus.SKIPPED

            if not exists:
                self.client.create_secret(
                    request={
                        "parent": parent,
                        "secret_id": secret_id,
                        "secret": {"replication": {"automatic": {}}},
                    }
                )
            self.client.add_secret_version(
                request={"parent": name, "payload": {"data": value.encode("UTF-8")}}
            )
        except (gcp_exceptions.Unauthenticated, gcp_exceptions.PermissionDenied,
                auth_exceptions.DefaultCredentialsError) as e:
            raise UnauthorizedError(f"gcp rejected the credentials for {self.project_id}: {e}")
        except gcp_exceptions.GoogleAPICallError as e:
            raise ProviderError(f"gcp: secret {secret_id} failed: {e}", status_code=e.code)

        status = UploadStatus.UPDATED if exists else UploadStatus.CREATED
        logger.info(f"gcp: secret {secret_id} {status.value} in {self.project_id}")
        return status

    async def upload_secret(self, name: str, value: str) -> UploadStatus:
        return await asyncio.to_thread(self._upload_secret_sync, self.credential_name(name), value)

    async def upload_variable(self, name: str, value: str) -> UploadStatus:
        raise OperationNotImplementedError("gcp Secret Manager does not store plain variables")
