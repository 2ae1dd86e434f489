"""Workflow for uploading built credentials to a host service."""
import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional, Union

from ..domains.config_loader import ModuleCache, load_config
from ..domains.errors import error_code
from ..domains.models import CredentialOutcome, CredType, ProjectConfig, UploadResult, UploadStatus
from ..domains.services.base import HostService
from ..domains.services.factory import create_service
from ..domains.settings import Settings
from .build import default_build_dir

logger = logging.getLogger(__name__)


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


async def _upload_one(
    result: UploadResult,
    service: HostService,
    cred_type: CredType,
    name: str,
    value: str,
) -> None:
    try:
        status = await service.upload(cred_type, name, value)
    except Exception as e:
        code = error_code(e)
        logger.error(f"Failed to upload {cred_type.value} {name}: [{code}] {e}")
        result.entries.append(
            CredentialOutcome(name, cred_type, UploadStatus.FAILED, reason=str(e), code=code)
        )
        return
    result.entries.append(CredentialOutcome(name, cred_type, status))


async def upload_credentials(
    config: ProjectConfig,
    service: HostService,
    build_dir: Union[str, Path],
    project_dir: Optional[Path] = None,
) -> UploadResult:
    """
    Upload the built artifacts and the flat ``secrets``/``variables`` maps.

    One credential's failure is recorded and does not stop the others.
    """
    build_dir = Path(build_dir)
    result = UploadResult(
        project_dir=Path(project_dir) if project_dir else (config.directory or build_dir.parent),
        service_name=service.service_name,
    )

    for spec in config.files:
        artifact = build_dir / spec.filename
        try:
            value = await asyncio.to_thread(artifact.read_text, encoding="utf-8")
        except FileNotFoundError:
            logger.error(f"Cannot upload {spec.credential_name}: {artifact} is not built")
            result.entries.append(
                CredentialOutcome(
                    spec.credential_name, spec.cred_type, UploadStatus.FAILED,
                    reason=f"{artifact} not built", code="not-built",
                )
            )
            continue
        except (OSError, UnicodeDecodeError) as e:
            code = error_code(e)
            logger.error(f"Cannot upload {spec.credential_name}: reading {artifact} failed: {e}")
            result.entries.append(
                CredentialOutcome(
                    spec.credential_name, spec.cred_type, UploadStatus.FAILED,
                    reason=f"cannot read {artifact}: {e}", code=code,
                )
            )
            continue
        await _upload_one(result, service, spec.cred_type, spec.credential_name, value)

    for name, value in config.secrets.items():
        await _upload_one(result, service, CredType.SECRET, name, _as_text(value))
    for name, value in config.variables.items():
        await _upload_one(result, service, CredType.VARIABLE, name, _as_text(value))

    return result


async def upload(
    dirname: Union[str, Path],
    build_dir: Optional[Union[str, Path]] = None,
    force: bool = False,
    cache: Optional[ModuleCache] = None,
    settings: Optional[Settings] = None,
    client: Any = None,
) -> UploadResult:
    """
    Upload the credentials of the project in ``dirname``.

    The host service is built before any artifact is read, so configuration
    errors surface without touching the build directory or the network.

    Raises:
        ConfigNotFoundError: If the directory has no configuration module
        MissingServiceNameError: If the service section has no name
        UnsupportedServiceNameError: If the service name is unknown
    """
    settings = settings or Settings()
    loaded = await load_config(dirname, cache, names=settings.config_names)
    service = create_service(loaded.config.service, force=force, settings=settings, client=client)
    target_dir = Path(build_dir) if build_dir else default_build_dir(dirname, settings)
    async with service:
        return await upload_credentials(
            loaded.config, service, target_dir, project_dir=Path(dirname).resolve()
        )
