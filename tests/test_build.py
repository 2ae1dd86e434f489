"""Tests for the build workflow."""
import asyncio
import json
import sys

import pytest
import yaml

from conftest import service_block, write_project

from credd.creds.domains.errors import ConfigNotFoundError
from credd.creds.domains.models import BuildStatus, FileSpec, ProjectConfig, ServiceDescriptor
from credd.creds.domains.settings import Settings
from credd.creds.workflows.build import build, build_artifacts, call_handler


def make_config(*specs):
    return ProjectConfig(service=ServiceDescriptor(service_name="github"), files=list(specs))


class TestBuild:
    """Test suite for the single-project build entry point."""

    @pytest.mark.asyncio
    async def test_builds_file_from_config(self, project_dir):
        """Test one structured-data file is built with the handler's value."""
        write_project(project_dir, service_block() + """
            files = [
                {
                    'name': 'test-secret',
                    'filename': 'test-secret.json',
                    'credType': 'secret',
                    'type': 'json',
                    'handler': lambda: {'key': 'value', 'number': 42},
                },
            ]
        """)

        result = await build(project_dir)

        path = project_dir / "build" / "test-secret.json"
        assert result.ok
        assert result.build_dir == (project_dir / "build").resolve()
        assert [e.status for e in result.entries] == [BuildStatus.BUILT]
        assert json.loads(path.read_text()) == {"key": "value", "number": 42}

    @pytest.mark.asyncio
    async def test_multiple_files(self, project_dir):
        """Test every declared file is built in order."""
        write_project(project_dir, service_block() + """
            files = [
                {'name': 'file1', 'filename': 'file1.json', 'credType': 'secret', 'type': 'json',
                 'handler': lambda: {'file': 1}},
                {'name': 'file2', 'filename': 'file2.json', 'credType': 'variable', 'type': 'json',
                 'handler': lambda: {'file': 2}},
            ]
        """)

        result = await build(project_dir)

        assert [e.filename for e in result.built] == ["file1.json", "file2.json"]
        assert json.loads((project_dir / "build" / "file1.json").read_text())["file"] == 1
        assert json.loads((project_dir / "build" / "file2.json").read_text())["file"] == 2

    @pytest.mark.asyncio
    async def test_async_handler(self, project_dir):
        """Test coroutine handlers are awaited."""
        write_project(project_dir, service_block() + """
            import asyncio

            async def load():
                await asyncio.sleep(0.01)
                return {'async': True}

            files = [{'name': 'async-file', 'filename': 'async-file.json', 'handler': load}]
        """)

        await build(project_dir)

        assert json.loads((project_dir / "build" / "async-file.json").read_text()) == {"async": True}

    @pytest.mark.asyncio
    async def test_empty_files_still_creates_build_dir(self, project_dir):
        """Test the build directory exists even when nothing is declared."""
        write_project(project_dir, service_block() + "files = []\n")

        result = await build(project_dir)

        assert (project_dir / "build").is_dir()
        assert result.entries == []
        assert result.ok

    @pytest.mark.asyncio
    async def test_custom_build_dir(self, project_dir):
        """Test an explicit build directory overrides the default."""
        write_project(project_dir, service_block() + """
            files = [{'name': 'custom-file', 'filename': 'custom.json', 'handler': lambda: {'custom': True}}]
        """)
        custom = project_dir / "custom-build"

        await build(project_dir, build_dir=custom)

        assert (custom / "custom.json").is_file()
        assert not (project_dir / "build").exists()

    @pytest.mark.asyncio
    async def test_build_dir_name_from_settings(self, project_dir):
        """Test the default build directory name comes from settings."""
        write_project(project_dir, service_block() + "files = [{'filename': 'a.json', 'handler': lambda: 1}]\n")

        await build(project_dir, settings=Settings(build_dir_name="out"))

        assert (project_dir / "out" / "a.json").is_file()

    @pytest.mark.asyncio
    async def test_all_output_types(self, project_dir):
        """Test every built-in type gets written with the handler's value."""
        write_project(project_dir, service_block() + """
            def handler(file_spec, cnf):
                return {'key': 'value', 'number': 42, 'file': file_spec.name}

            files = [
                {'name': 'json', 'filename': 'test.json', 'type': 'json', 'handler': handler},
                {'name': 'cjs', 'filename': 'test.js', 'type': 'cjs', 'handler': handler},
                {'name': 'esm', 'filename': 'test.ts', 'type': 'esm', 'handler': handler},
                {'name': 'env', 'filename': 'test.env', 'type': 'env', 'handler': handler},
                {'name': 'yaml', 'filename': 'test.yml', 'type': 'yaml', 'handler': handler},
                {'name': 'py', 'filename': 'test_values.py', 'type': 'py', 'handler': handler},
            ]
        """)

        result = await build(project_dir)
        out = project_dir / "build"

        assert result.ok, result.failed
        assert json.loads((out / "test.json").read_text())["file"] == "json"
        assert (out / "test.js").read_text().startswith("module.exports")
        assert (out / "test.ts").read_text().startswith("export default")
        assert "key=value" in (out / "test.env").read_text().splitlines()
        assert yaml.safe_load((out / "test.yml").read_text())["number"] == 42
        assert "'file': 'py'" in (out / "test_values.py").read_text()

    @pytest.mark.asyncio
    async def test_handler_loads_auxiliary_files(self, project_dir):
        """Test handlers can read files next to the config."""
        (project_dir / "source-data.json").write_text(json.dumps({"apiKey": "test-key", "environment": "test"}))
        (project_dir / "test_secret.py").write_text("default = {'AWS_S3_TOKEN': 'QWERTY'}\n")
        write_project(project_dir, service_block() + """
            import json
            import time
            from pathlib import Path

            def config_handler(file_options, config):
                data = json.loads((Path(__file__).parent / 'source-data.json').read_text())
                return {**data, 'timestamp': time.time()}

            files = [
                {'name': 'config', 'filename': 'config.json', 'handler': config_handler},
                {'name': 'test_secret', 'filename': 'test_secret.js', 'type': 'js',
                 'handler': lambda spec: require(spec.filename.replace('.js', '.py'))},
            ]
        """)

        result = await build(project_dir, force=True)

        assert result.ok, result.failed
        built = json.loads((project_dir / "build" / "config.json").read_text())
        assert built["apiKey"] == "test-key"
        assert built["timestamp"]
        assert "AWS_S3_TOKEN" in (project_dir / "build" / "test_secret.js").read_text()

    @pytest.mark.asyncio
    async def test_missing_config(self, tmp_path):
        """Test building a directory without config raises CONFIG_NOT_FOUND."""
        with pytest.raises(ConfigNotFoundError):
            await build(tmp_path)


class TestBuildArtifacts:
    """Test suite for build_artifacts idempotence and failure handling."""

    @pytest.mark.asyncio
    async def test_second_build_without_force_is_a_no_op(self, tmp_path):
        """Test existing artifacts are skipped and handlers not re-invoked."""
        calls = []

        def handler():
            calls.append(1)
            return {"n": len(calls)}

        config = make_config(FileSpec("a", "a.json", handler), FileSpec("b", "b.json", handler))

        first = await build_artifacts(config, tmp_path / "build")
        mtime = (tmp_path / "build" / "a.json").stat().st_mtime_ns
        second = await build_artifacts(config, tmp_path / "build")

        assert [e.status for e in first.entries] == [BuildStatus.BUILT, BuildStatus.BUILT]
        assert [e.status for e in second.entries] == [BuildStatus.SKIPPED_EXISTING] * 2
        assert len(calls) == 2
        assert (tmp_path / "build" / "a.json").stat().st_mtime_ns == mtime
        assert json.loads((tmp_path / "build" / "a.json").read_text()) == {"n": 1}

    @pytest.mark.asyncio
    async def test_force_rebuilds_everything(self, tmp_path):
        """Test force re-invokes every handler and overwrites every artifact."""
        calls = []

        def handler():
            calls.append(1)
            return {"n": len(calls)}

        config = make_config(FileSpec("a", "a.json", handler), FileSpec("b", "b.json", handler))

        await build_artifacts(config, tmp_path / "build")
        second = await build_artifacts(config, tmp_path / "build", force=True)

        assert [e.status for e in second.entries] == [BuildStatus.BUILT] * 2
        assert len(calls) == 4
        assert json.loads((tmp_path / "build" / "a.json").read_text()) == {"n": 3}
        assert json.loads((tmp_path / "build" / "b.json").read_text()) == {"n": 4}

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_stop_siblings(self, tmp_path):
        """Test one failed file is recorded and the rest are still built."""
        def broken():
            raise RuntimeError("vault unreachable")

        config = make_config(
            FileSpec("bad", "bad.json", broken),
            FileSpec("good", "good.json", lambda: {"ok": True}),
            FileSpec("odd", "odd.txt", lambda: 1, type="toml"),
        )

        result = await build_artifacts(config, tmp_path / "build")

        assert [e.status for e in result.entries] == [
            BuildStatus.FAILED, BuildStatus.BUILT, BuildStatus.FAILED,
        ]
        assert result.entries[0].reason == "vault unreachable"
        assert "unknown file type" in result.entries[2].reason
        assert not result.ok
        assert not (tmp_path / "build" / "bad.json").exists()
        assert (tmp_path / "build" / "good.json").is_file()

    @pytest.mark.asyncio
    async def test_fail_fast_stops_at_first_failure(self, tmp_path):
        """Test the fail-fast policy leaves later files unattempted."""
        def broken():
            raise RuntimeError("boom")

        config = make_config(
            FileSpec("bad", "bad.json", broken),
            FileSpec("good", "good.json", lambda: {"ok": True}),
        )

        result = await build_artifacts(config, tmp_path / "build", fail_fast=True)

        assert [e.name for e in result.entries] == ["bad"]
        assert not (tmp_path / "build" / "good.json").exists()

    @pytest.mark.asyncio
    async def test_command_handler(self, tmp_path):
        """Test an out-of-process command produces the value."""
        from credd.creds.domains.handlers import CommandHandler

        handler = CommandHandler(
            [sys.executable, "-c", "import json, os; print(json.dumps({'file': os.environ['CREDD_FILENAME']}))"],
            cwd=tmp_path,
        )
        config = make_config(FileSpec("cmd", "cmd.json", handler))

        result = await build_artifacts(config, tmp_path / "build")

        assert result.ok, result.failed
        assert json.loads((tmp_path / "build" / "cmd.json").read_text()) == {"file": "cmd.json"}


class TestCallHandler:
    """Test suite for handler invocation."""

    @pytest.mark.asyncio
    async def test_passes_as_many_arguments_as_accepted(self):
        """Test handlers may take zero, one or two positional arguments."""
        spec = FileSpec("a", "a.json", handler=None)
        config = make_config()

        spec.handler = lambda: "none"
        assert await call_handler(spec, config) == "none"
        spec.handler = lambda s: s.filename
        assert await call_handler(spec, config) == "a.json"
        spec.handler = lambda s, c: (s.name, c.service.service_name)
        assert await call_handler(spec, config) == ("a", "github")
        spec.handler = lambda *args: len(args)
        assert await call_handler(spec, config) == 2

    @pytest.mark.asyncio
    async def test_awaits_returned_future(self):
        """Test a sync handler returning an awaitable is awaited."""
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        future.set_result({"later": True})
        spec = FileSpec("a", "a.json", handler=lambda: future)

        assert await call_handler(spec, make_config()) == {"later": True}
