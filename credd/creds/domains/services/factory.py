"""Construction of host services from a project's service descriptor."""
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Type, Union

from ..config_loader import ModuleCache, load_config
from ..errors import MissingServiceNameError, UnsupportedServiceNameError
from ..models import ServiceDescriptor
from ..settings import Settings
from .base import HostService
from .gcp import GcpService
from .github import GithubService
from .gitlab import GitlabService

logger = logging.getLogger(__name__)

SERVICES: Dict[str, Type[HostService]] = {
    "github": GithubService,
    "gitlab": GitlabService,
    "gcp": GcpService,
}


def create_service(
    descriptor: ServiceDescriptor,
    force: bool = False,
    settings: Optional[Settings] = None,
    client: Any = None,
) -> HostService:
    """
    Build the host service named by ``descriptor.service_name``.

    No network access happens here.

    Args:
        descriptor: The project's service section
        force: Update credentials that already exist
        settings: Tool settings (API endpoints, timeout)
        client: Pre-built provider client, mainly for tests

    Raises:
        MissingServiceNameError: If the descriptor has no service name
        UnsupportedServiceNameError: If the name is not a known provider
    """
    settings = settings or Settings()
    service_name = descriptor.service_name
    if not service_name:
        raise MissingServiceNameError("service.serviceName is required")

    service_cls = SERVICES.get(service_name)
    if service_cls is None:
        raise UnsupportedServiceNameError(
            f"incorrect serviceName {service_name!r} (supported: {', '.join(sorted(SERVICES))})"
        )

    kwargs: Dict[str, Any] = {
        "token": descriptor.token,
        "project_path": descriptor.project_path,
        "project_id": descriptor.project_id,
        "server": descriptor.server,
        "force": force,
        "timeout": settings.timeout,
        "client": client,
    }
    if service_cls is GithubService:
        kwargs["api_url"] = settings.github_api_url
    elif service_cls is GitlabService:
        kwargs["default_server"] = settings.gitlab_server

    service = service_cls(**kwargs)
    logger.debug(f"Created {service!r}")
    return service


async def create_service_for_dir(
    dirname: Union[str, Path],
    force: bool = False,
    cache: Optional[ModuleCache] = None,
    settings: Optional[Settings] = None,
    client: Any = None,
) -> HostService:
    """Load the project configuration in ``dirname`` and build its service."""
    settings = settings or Settings()
    loaded = await load_config(dirname, cache, names=settings.config_names)
    return create_service(loaded.config.service, force=force, settings=settings, client=client)
