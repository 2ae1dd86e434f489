"""Serialization of handler values into artifact text, keyed by file ``type``."""
import json
import logging
import pprint
import re
from typing import Any, Callable, Dict

import yaml

logger = logging.getLogger(__name__)

Formatter = Callable[[Any], str]

_FORMATTERS: Dict[str, Formatter] = {}

_ENV_NEEDS_QUOTES = re.compile(r"[\s\"'#=\\]")


def register_formatter(type_name: str, formatter: Formatter) -> None:
    """Register (or replace) the formatter used for ``type_name`` files."""
    _FORMATTERS[type_name] = formatter


def get_formatter(type_name: str) -> Formatter:
    try:
        return _FORMATTERS[type_name]
    except KeyError:
        known = ", ".join(sorted(_FORMATTERS))
        raise ValueError(f"unknown file type {type_name!r} (known: {known})")


def format_value(type_name: str, value: Any) -> str:
    return get_formatter(type_name)(value)


def to_json(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False) + "\n"


def to_yaml(value: Any) -> str:
    return yaml.safe_dump(value, sort_keys=False, allow_unicode=True)


def to_python_module(value: Any) -> str:
    # Loadable with import_module_file; the value is exposed as VALUE and default.
    return f"VALUE = {pprint.pformat(value, sort_dicts=False)}\ndefault = VALUE\n"


def to_commonjs(value: Any) -> str:
    return f"module.exports = {json.dumps(value, indent=2, ensure_ascii=False)};\n"


def to_esm(value: Any) -> str:
    return f"export default {json.dumps(value, indent=2, ensure_ascii=False)};\n"


def _env_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value)
    if _ENV_NEEDS_QUOTES.search(text):
        return json.dumps(text, ensure_ascii=False)
    return text


def to_env(value: Any) -> str:
    """KEY=value lines for the top-level scalar entries of a mapping."""
    if not isinstance(value, dict):
        raise TypeError(f"env files need a mapping value, got {type(value).__name__}")
    lines = []
    for key, item in value.items():
        if isinstance(item, (dict, list, tuple, set)):
            logger.debug(f"env output skips non-scalar entry {key!r}")
            continue
        lines.append(f"{key}={_env_value(item)}")
    return "\n".join(lines) + "\n" if lines else ""


def to_text(value: Any) -> str:
    return str(value)


for _name, _formatter in (
    ("json", to_json),
    ("yaml", to_yaml),
    ("yml", to_yaml),
    ("py", to_python_module),
    ("js", to_commonjs),
    ("cjs", to_commonjs),
    ("esm", to_esm),
    ("mjs", to_esm),
    ("ts", to_esm),
    ("env", to_env),
    ("text", to_text),
    ("txt", to_text),
):
    register_formatter(_name, _formatter)
