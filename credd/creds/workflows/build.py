"""Workflow for building credential artifacts of a project."""
import asyncio
import inspect
import logging
from pathlib import Path
from typing import Any, Callable, Optional, Union

from ..domains.config_loader import ModuleCache, load_config
from ..domains.formatters import format_value
from ..domains.models import BuildResult, BuildStatus, FileBuildOutcome, FileSpec, ProjectConfig
from ..domains.settings import Settings

logger = logging.getLogger(__name__)


def _positional_arity(func: Callable[..., Any]) -> Optional[int]:
    """Number of positional args ``func`` takes, or None when unbounded/unknown."""
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return None
    count = 0
    for param in signature.parameters.values():
        if param.kind == param.VAR_POSITIONAL:
            return None
        if param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD):
            count += 1
    return count


async def call_handler(spec: FileSpec, config: ProjectConfig) -> Any:
    """
    Call ``spec.handler`` with as many of ``(spec, config)`` as it accepts.

    Async handlers and handlers returning awaitables are awaited.
    """
    args = (spec, config)
    arity = _positional_arity(spec.handler)
    if arity is not None:
        args = args[:arity]
    result = spec.handler(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


def _write(path: Path, text: str) -> None:
    path.write_text(text, encoding="utf-8")


async def build_artifacts(
    config: ProjectConfig,
    build_dir: Union[str, Path],
    force: bool = False,
    fail_fast: bool = False,
    project_dir: Optional[Path] = None,
) -> BuildResult:
    """
    Materialize every FileSpec of ``config`` into ``build_dir``.

    Args:
        config: Loaded project configuration
        build_dir: Output directory, created if missing
        force: Rebuild artifacts that already exist
        fail_fast: Stop at the first failing file instead of continuing
        project_dir: Reported project directory (defaults to the config's)

    Returns:
        BuildResult with one entry per attempted FileSpec
    """
    build_dir = Path(build_dir)
    await asyncio.to_thread(build_dir.mkdir, parents=True, exist_ok=True)
    result = BuildResult(
        project_dir=Path(project_dir) if project_dir else (config.directory or build_dir.parent),
        build_dir=build_dir,
    )

    for spec in config.files:
        target = build_dir / spec.filename

        if not force and await asyncio.to_thread(target.exists):
            logger.info(f"Skipping {spec.filename}: already built")
            result.entries.append(
                FileBuildOutcome(spec.name, spec.filename, target, BuildStatus.SKIPPED_EXISTING)
            )
            continue

        try:
            value = await call_handler(spec, config)
            text = format_value(spec.type, value)
            await asyncio.to_thread(_write, target, text)
        except Exception as e:
            logger.error(f"Failed to build {spec.filename}: {e}")
            result.entries.append(
                FileBuildOutcome(spec.name, spec.filename, target, BuildStatus.FAILED, reason=str(e) or type(e).__name__)
            )
            if fail_fast:
                break
            continue

        logger.info(f"Built {spec.filename}")
        result.entries.append(FileBuildOutcome(spec.name, spec.filename, target, BuildStatus.BUILT))

    return result


def default_build_dir(dirname: Union[str, Path], settings: Settings) -> Path:
    return Path(dirname).resolve() / settings.build_dir_name


async def build(
    dirname: Union[str, Path],
    build_dir: Optional[Union[str, Path]] = None,
    force: bool = False,
    cache: Optional[ModuleCache] = None,
    settings: Optional[Settings] = None,
    fail_fast: bool = False,
) -> BuildResult:
    """
    Build the artifacts of the project in ``dirname``.

    Raises:
        ConfigNotFoundError: If the directory has no configuration module
        InvalidConfigError: If the configuration has the wrong shape
    """
    settings = settings or Settings()
    loaded = await load_config(dirname, cache, names=settings.config_names)
    target_dir = Path(build_dir) if build_dir else default_build_dir(dirname, settings)
    logger.info(f"Building {len(loaded.config.files)} file(s) of {dirname} into {target_dir}")
    return await build_artifacts(
        loaded.config,
        target_dir,
        force=force,
        fail_fast=fail_fast,
        project_dir=Path(dirname).resolve(),
    )
