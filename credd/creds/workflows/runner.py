"""Single-project and recursive (deep) runs of build and upload."""
import asyncio
import logging
from pathlib import Path
from typing import Any, Optional, Union

from ..domains.config_loader import ModuleCache, load_config
from ..domains.discovery import find_projects
from ..domains.errors import error_code
from ..domains.models import DeepReport, ProjectOutcome
from ..domains.services.factory import create_service
from ..domains.settings import Settings
from .build import build_artifacts, default_build_dir
from .upload import upload_credentials

logger = logging.getLogger(__name__)


async def run_project(
    dirname: Union[str, Path],
    build: bool = True,
    upload: bool = False,
    force: bool = False,
    build_dir: Optional[Union[str, Path]] = None,
    cache: Optional[ModuleCache] = None,
    settings: Optional[Settings] = None,
    fail_fast: bool = False,
    client: Any = None,
) -> ProjectOutcome:
    """
    Build and/or upload one project.

    The configuration is loaded once; the build finishes before the upload
    starts, since the upload reads the build directory. Errors propagate.
    """
    settings = settings or Settings()
    project_dir = Path(dirname).resolve()
    target_dir = Path(build_dir) if build_dir else default_build_dir(project_dir, settings)
    outcome = ProjectOutcome(project_dir=project_dir)

    loaded = await load_config(project_dir, cache, names=settings.config_names)
    config = loaded.config

    service = None
    if upload:
        # Fail on a bad service section before building anything.
        service = create_service(config.service, force=force, settings=settings, client=client)

    if build:
        logger.info(f"Building {project_dir}")
        outcome.build = await build_artifacts(
            config, target_dir, force=force, fail_fast=fail_fast, project_dir=project_dir
        )

    if service is not None:
        logger.info(f"Uploading {project_dir} to {service.service_name}")
        async with service:
            outcome.upload = await upload_credentials(
                config, service, target_dir, project_dir=project_dir
            )

    return outcome


async def run_deep(
    root: Union[str, Path],
    build: bool = True,
    upload: bool = False,
    force: bool = False,
    settings: Optional[Settings] = None,
    fail_fast: bool = False,
    client: Any = None,
) -> DeepReport:
    """
    Run every project below ``root`` that carries the project marker.

    Projects run one after another in discovery order. A failure inside one
    project is recorded in its entry and the run moves on.

    Raises:
        DiscoveryError: If ``root`` is not a directory
    """
    settings = settings or Settings()
    root = Path(root).resolve()
    projects = await asyncio.to_thread(
        find_projects,
        root,
        settings.marker,
        settings.discovery_excludes(),
        settings.build_dir_name,
    )
    report = DeepReport(root=root)
    cache = ModuleCache()

    for project_dir in projects:
        try:
            outcome = await run_project(
                project_dir,
                build=build,
                upload=upload,
                force=force,
                cache=cache,
                settings=settings,
                fail_fast=fail_fast,
                client=client,
            )
        except Exception as e:
            code = error_code(e)
            logger.error(f"Project {project_dir} failed: [{code}] {e}")
            outcome = ProjectOutcome(project_dir=project_dir, error=e, error_code=code)
        report.projects.append(outcome)

    logger.info(
        f"Deep run under {root}: {len(report.succeeded)} succeeded, {len(report.failed)} failed"
    )
    return report


async def build_deep(root: Union[str, Path], force: bool = False, **kwargs: Any) -> DeepReport:
    return await run_deep(root, build=True, upload=False, force=force, **kwargs)


async def upload_deep(root: Union[str, Path], force: bool = False, **kwargs: Any) -> DeepReport:
    return await run_deep(root, build=False, upload=True, force=force, **kwargs)
