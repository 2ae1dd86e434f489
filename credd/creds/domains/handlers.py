"""Handlers declared without Python code.

Data-form configuration files cannot carry functions, so a file entry names
its handler instead:

- ``handler: "handlers.py:make_token"`` - function in a file next to the config
- ``handler: "package.module:function"`` - function in an importable module
- ``value: {...}`` - literal value
- ``command: ["vault", "read", "-format=json", "kv/app"]`` - subprocess whose
  stdout is parsed as JSON, or returned as text when it is not JSON
"""
import asyncio
import copy
import importlib
import json
import logging
import os
import shlex
from pathlib import Path
from types import ModuleType
from typing import Any, Callable, List, Mapping, Union

from .errors import InvalidConfigError

logger = logging.getLogger(__name__)


class ValueHandler:
    """Returns a fixed value."""

    def __init__(self, value: Any):
        self.value = value

    def __call__(self) -> Any:
        return copy.deepcopy(self.value)

    def __repr__(self) -> str:
        return f"ValueHandler({self.value!r})"


class CommandHandler:
    """Runs a command and returns what it prints."""

    def __init__(self, argv: Union[str, List[str]], cwd: Path):
        if isinstance(argv, str):
            argv = shlex.split(argv)
        if not argv or not all(isinstance(part, str) for part in argv):
            raise InvalidConfigError(f"command must be a non-empty list of strings, got {argv!r}")
        self.argv = list(argv)
        self.cwd = Path(cwd)

    async def __call__(self, file_spec, config) -> Any:
        env = dict(os.environ)
        env["CREDD_FILE_NAME"] = file_spec.name
        env["CREDD_FILENAME"] = file_spec.filename
        logger.debug(f"Running handler command for {file_spec.name}: {self.argv[0]}")
        proc = await asyncio.create_subprocess_exec(
            *self.argv,
            cwd=str(self.cwd),
            env=env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            raise RuntimeError(
                f"command {self.argv[0]!r} exited with {proc.returncode}: "
                f"{stderr.decode(errors='replace').strip()}"
            )
        text = stdout.decode()
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return text.rstrip("\n")

    def __repr__(self) -> str:
        return f"CommandHandler({self.argv!r})"


def _is_file_reference(module_part: str) -> bool:
    return module_part.endswith(".py") or "/" in module_part or os.sep in module_part


def load_reference(
    reference: str,
    base_dir: Path,
    load_file: Callable[[Path], Any],
) -> Callable[..., Any]:
    """
    Resolve ``"module:attr"`` to a callable.

    Args:
        reference: ``file.py:function`` or ``package.module:function``
        base_dir: Directory file references are relative to
        load_file: Loader for file references (shares the run's module cache)

    Raises:
        InvalidConfigError: If the reference is malformed or does not resolve
    """
    module_part, sep, attr_path = reference.rpartition(":")
    if not sep or not module_part or not attr_path:
        raise InvalidConfigError(f"handler reference {reference!r} must look like 'module:function'")

    if _is_file_reference(module_part):
        target: Any = load_file(Path(base_dir) / module_part)
    else:
        try:
            target = importlib.import_module(module_part)
        except ModuleNotFoundError as e:
            raise InvalidConfigError(f"handler reference {reference!r}: {e}")

    for attr in attr_path.split("."):
        if isinstance(target, Mapping):
            if attr not in target:
                raise InvalidConfigError(f"handler reference {reference!r}: no attribute {attr!r}")
            target = target[attr]
        else:
            try:
                target = getattr(target, attr)
            except AttributeError:
                where = target.__name__ if isinstance(target, ModuleType) else type(target).__name__
                raise InvalidConfigError(f"handler reference {reference!r}: {where} has no attribute {attr!r}")

    if not callable(target):
        raise InvalidConfigError(f"handler reference {reference!r} is not callable")
    return target


def resolve_handler(
    raw: Mapping[str, Any],
    base_dir: Path,
    load_file: Callable[[Path], Any],
) -> Callable[..., Any]:
    """Return the callable that computes a file entry's value."""
    name = raw.get("name") or raw.get("filename")
    handler = raw.get("handler")
    if handler is not None:
        if callable(handler):
            return handler
        if isinstance(handler, str):
            return load_reference(handler, base_dir, load_file)
        raise InvalidConfigError(f"file {name!r}: handler must be callable or a 'module:function' string")
    if "value" in raw:
        return ValueHandler(raw["value"])
    if "command" in raw:
        return CommandHandler(raw["command"], cwd=base_dir)
    raise InvalidConfigError(f"file {name!r} declares no handler, value or command")
