"""Configuration loader for credd projects.

A project directory holds one configuration module: ``config.py`` (executed)
or ``config.yml`` / ``config.yaml`` / ``config.json`` (parsed). Both forms
normalize to the same ``ProjectConfig``.
"""
import asyncio
import hashlib
import inspect
import json
import logging
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import Any, Dict, Iterable, Mapping, Optional, Union

import yaml

from .errors import ConfigNotFoundError, InvalidConfigError
from .handlers import resolve_handler
from .models import FileSpec, ProjectConfig, ServiceDescriptor
from .settings import DEFAULT_CONFIG_NAMES

logger = logging.getLogger(__name__)

DATA_SUFFIXES = (".json", ".yml", ".yaml")
EXPORT_NAMES = ("service", "files", "secrets", "variables")

PathLike = Union[str, Path]


class ModuleCache:
    """
    Loaded configuration modules and data files of one run.

    Entries are keyed by the fully resolved path, so two projects whose
    configuration files share a name never see each other's module.
    """

    def __init__(self):
        self._entries: Dict[Path, Any] = {}

    @staticmethod
    def key(path: PathLike) -> Path:
        return Path(path).resolve()

    def __contains__(self, path: PathLike) -> bool:
        return self.key(path) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, path: PathLike) -> Any:
        return self._entries[self.key(path)]

    def put(self, path: PathLike, value: Any) -> None:
        self._entries[self.key(path)] = value

    def invalidate(self, path: PathLike) -> bool:
        """Drop the entry for ``path``. Returns True if there was one."""
        key = self.key(path)
        if key in self._entries:
            del self._entries[key]
            logger.debug(f"Module cache entry dropped: {key}")
            return True
        return False

    def clear(self) -> None:
        self._entries.clear()


@dataclass
class LoadedConfig:
    path: Path
    config: ProjectConfig


def _module_name(path: Path) -> str:
    digest = hashlib.sha1(str(path).encode("utf-8")).hexdigest()[:16]
    stem = re.sub(r"\W", "_", path.stem)
    return f"_credd_{stem}_{digest}"


def _unwrap_default(loaded: Any) -> Any:
    if isinstance(loaded, ModuleType):
        return getattr(loaded, "default", loaded)
    if isinstance(loaded, Mapping) and set(loaded) == {"default"}:
        return loaded["default"]
    return loaded


def _make_require(base_dir: Path, cache: "ModuleCache"):
    def require(relative_path: PathLike) -> Any:
        """Load a file relative to the configuration module."""
        return _unwrap_default(import_module_file(base_dir / relative_path, cache))
    return require


def _exec_python(path: Path, cache: ModuleCache) -> ModuleType:
    # Compiled from source on every load: no bytecode is written next to the
    # project and an edited file is never served from a stale .pyc.
    name = _module_name(path)
    module = ModuleType(name)
    module.__file__ = str(path)
    module.require = _make_require(path.parent, cache)
    code = compile(path.read_text(encoding="utf-8"), str(path), "exec")
    sys.modules[name] = module
    try:
        exec(code, module.__dict__)
    finally:
        sys.modules.pop(name, None)
    return module


def _load_data(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if path.suffix == ".json":
        return json.loads(text)
    return yaml.safe_load(text)


def import_module_file(
    path: PathLike,
    cache: Optional[ModuleCache] = None,
    remove_cache: bool = False,
) -> Any:
    """
    Load a Python module or a JSON/YAML data file.

    Args:
        path: File to load
        cache: Run-scoped cache; a private one is used when omitted
        remove_cache: Evict the entry after loading so the next load re-reads the file

    Returns:
        The executed module for ``.py`` files, the parsed document otherwise

    Raises:
        ConfigNotFoundError: If ``path`` does not exist
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigNotFoundError(f"{path} not found")
    if cache is None:
        cache = ModuleCache()

    key = cache.key(path)
    if key in cache:
        loaded = cache.get(key)
    else:
        if key.suffix in DATA_SUFFIXES:
            loaded = _load_data(key)
        else:
            loaded = _exec_python(key, cache)
        cache.put(key, loaded)
        logger.debug(f"Loaded {key}")

    if remove_cache:
        cache.invalidate(key)
    return loaded


def find_config_file(dirname: PathLike, names: Iterable[str] = DEFAULT_CONFIG_NAMES) -> Path:
    """
    Locate the configuration module of a project directory.

    Raises:
        ConfigNotFoundError: If none of ``names`` exists in ``dirname``
    """
    dirname = Path(dirname)
    names = tuple(names)
    for name in names:
        candidate = dirname / name
        if candidate.is_file():
            return candidate
    raise ConfigNotFoundError(f"{' / '.join(names)} not found at {dirname}")


def _export_of(loaded: Any) -> Any:
    if isinstance(loaded, ModuleType):
        namespace = vars(loaded)
        if "default" in namespace:
            return namespace["default"]
        if "config" in namespace:
            return namespace["config"]
        return {name: namespace[name] for name in EXPORT_NAMES if name in namespace}
    return _unwrap_default(loaded)


def _as_mapping(value: Any, what: str, path: Path) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise InvalidConfigError(f"{path}: '{what}' must be a mapping, got {type(value).__name__}")
    return dict(value)


async def normalize_config(export: Any, path: Path, cache: ModuleCache) -> ProjectConfig:
    """Turn whatever a configuration module exports into a ``ProjectConfig``."""
    if callable(export) and not isinstance(export, ProjectConfig):
        export = export()
        if inspect.isawaitable(export):
            export = await export

    if isinstance(export, ProjectConfig):
        if export.path is None:
            export.path = path
        return export

    if not isinstance(export, Mapping):
        raise InvalidConfigError(
            f"{path} must export a mapping with a 'service' section, got {type(export).__name__}"
        )

    service_raw = export.get("service")
    if service_raw is None:
        raise InvalidConfigError(f"{path}: missing 'service' section")
    if isinstance(service_raw, ServiceDescriptor):
        service = service_raw
    else:
        service = ServiceDescriptor.from_dict(service_raw)

    files_raw = export.get("files") or []
    if isinstance(files_raw, (str, bytes)) or not isinstance(files_raw, (list, tuple)):
        raise InvalidConfigError(f"{path}: 'files' must be a list")

    base_dir = path.parent

    def load_file(file_path: Path) -> Any:
        return import_module_file(file_path, cache)

    files = []
    for raw in files_raw:
        if isinstance(raw, FileSpec):
            files.append(raw)
            continue
        if not isinstance(raw, Mapping):
            raise InvalidConfigError(f"{path}: file entries must be mappings, got {type(raw).__name__}")
        files.append(FileSpec.from_dict(raw, resolve_handler(raw, base_dir, load_file)))

    return ProjectConfig(
        service=service,
        files=files,
        secrets=_as_mapping(export.get("secrets"), "secrets", path),
        variables=_as_mapping(export.get("variables"), "variables", path),
        path=path,
    )


async def load_config(
    dirname: PathLike,
    cache: Optional[ModuleCache] = None,
    reload: bool = False,
    names: Iterable[str] = DEFAULT_CONFIG_NAMES,
) -> LoadedConfig:
    """
    Load and normalize the configuration of one project directory.

    Args:
        dirname: Project directory
        cache: Run-scoped module cache; a private one is used when omitted
        reload: Drop a cached entry for the configuration module first
        names: Candidate configuration file names, tried in order

    Returns:
        LoadedConfig with the resolved module path and the ProjectConfig

    Raises:
        ConfigNotFoundError: If the directory has no configuration module
        InvalidConfigError: If the export does not have the expected shape
    """
    path = find_config_file(dirname, names).resolve()
    if cache is None:
        cache = ModuleCache()
    if reload:
        cache.invalidate(path)

    loaded = await asyncio.to_thread(import_module_file, path, cache)
    config = await normalize_config(_export_of(loaded), path, cache)
    logger.debug(f"Configuration loaded from {path}: {len(config.files)} file(s)")
    return LoadedConfig(path=path, config=config)
