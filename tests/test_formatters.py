"""Tests for artifact formatters."""
import json

import pytest
import yaml

from credd.creds.domains import formatters
from credd.creds.domains.config_loader import import_module_file

VALUE = {"key": "value", "number": 42, "nested": {"list": [1, "two", None], "flag": True}}


def test_json_round_trip():
    """Test the structured-data format reproduces nested values exactly."""
    text = formatters.format_value("json", VALUE)

    assert json.loads(text) == VALUE
    assert text.endswith("\n")


def test_yaml_round_trip():
    """Test YAML output parses back to the same value."""
    assert yaml.safe_load(formatters.format_value("yaml", VALUE)) == VALUE
    assert formatters.get_formatter("yml") is formatters.get_formatter("yaml")


def test_python_module_is_loadable(tmp_path):
    """Test the wrapped Python module can itself be loaded downstream."""
    path = tmp_path / "creds.py"
    path.write_text(formatters.format_value("py", VALUE))

    module = import_module_file(path)

    assert module.VALUE == VALUE
    assert module.default == VALUE


def test_javascript_wrappers():
    """Test CommonJS and ES module wrappers embed the JSON value."""
    cjs = formatters.format_value("js", {"AWS_S3_TOKEN": "QWERTY"})
    esm = formatters.format_value("esm", {"AWS_S3_TOKEN": "QWERTY"})

    assert cjs.startswith("module.exports = ")
    assert cjs.rstrip().endswith(";")
    assert json.loads(cjs[len("module.exports = "):].rstrip().rstrip(";")) == {"AWS_S3_TOKEN": "QWERTY"}
    assert esm.startswith("export default ")
    assert "AWS_S3_TOKEN" in esm


def test_env_lines_for_top_level_scalars():
    """Test env output has one KEY=value line per scalar and skips nested values."""
    text = formatters.format_value("env", {
        "key": "value",
        "number": 42,
        "enabled": False,
        "empty": None,
        "spaced": "two words",
        "cnf": {"nested": True},
        "items": [1, 2],
    })

    assert text.splitlines() == [
        "key=value",
        "number=42",
        "enabled=false",
        "empty=",
        'spaced="two words"',
    ]


def test_env_requires_mapping():
    """Test env output of a non-mapping value fails."""
    with pytest.raises(TypeError):
        formatters.format_value("env", ["a", "b"])


def test_unknown_type():
    """Test an unregistered type names the known ones."""
    with pytest.raises(ValueError, match="unknown file type 'toml'"):
        formatters.format_value("toml", {})


def test_register_custom_formatter(monkeypatch):
    """Test formatters are pluggable by type."""
    monkeypatch.setattr(formatters, "_FORMATTERS", dict(formatters._FORMATTERS))
    formatters.register_formatter("upper", lambda value: str(value).upper())

    assert formatters.format_value("upper", "abc") == "ABC"
