"""Tests for compose generation and the launcher."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import yaml

from devup.activities import services
from devup.exceptions import LaunchError
from devup.models.report import ProjectReport


class TestBuildCompose:
    """Test build_compose()."""

    def test_one_block_per_service_plus_app(self, tmp_path, node_report):
        """Exactly app plus each detected service, in order."""
        compose = services.build_compose(tmp_path, node_report, [])
        assert list(compose["services"]) == ["app", "postgres", "redis"]

    def test_depends_on_matches_services(self, tmp_path, node_report):
        """app waits for every service's health check."""
        app = services.build_compose(tmp_path, node_report, [])["services"]["app"]
        assert app["depends_on"] == {
            "postgres": {"condition": "service_healthy"},
            "redis": {"condition": "service_healthy"},
        }

    def test_no_services_omits_depends_on(self, tmp_path, bare_report):
        """depends_on is left out entirely when there are no services."""
        compose = services.build_compose(tmp_path, bare_report, [])
        assert list(compose["services"]) == ["app"]
        assert "depends_on" not in compose["services"]["app"]

    def test_app_block(self, tmp_path, fastapi_report):
        """app builds from the project root with the generated Dockerfile."""
        app = services.build_compose(tmp_path, fastapi_report, [])["services"]["app"]
        assert app["build"] == {"context": "..", "dockerfile": ".devup/Dockerfile"}
        assert app["ports"] == ["8000:8000"]
        assert app["env_file"] == ["../.env"]
        assert app["volumes"] == ["..:/app"]

    def test_node_keeps_image_node_modules(self, tmp_path, node_report):
        """Node apps mask the host node_modules."""
        app = services.build_compose(tmp_path, node_report, [])["services"]["app"]
        assert "/app/node_modules" in app["volumes"]

    def test_env_file_omitted_when_missing(self, tmp_path, bare_report):
        """No env_file clause when there's no .env to load."""
        app = services.build_compose(tmp_path, bare_report, [], has_env_file=False)["services"][
            "app"
        ]
        assert "env_file" not in app

    def test_relational_aliases_and_credentials(self, tmp_path, fastapi_report):
        """MySQL answers to db/database and uses the fixed credentials."""
        mysql = services.build_compose(tmp_path, fastapi_report, [])["services"]["mysql"]
        assert mysql["image"] == "mysql:8.0"
        assert mysql["networks"] == {"default": {"aliases": ["db", "database"]}}
        assert mysql["environment"]["MYSQL_DATABASE"] == "todos_db"
        assert mysql["environment"]["MYSQL_USER"] == "devuser"
        assert mysql["ports"] == ["3306:3306"]
        assert mysql["healthcheck"]["retries"] == 10

    def test_schema_files_are_mounted(self, tmp_path, node_report):
        """SQL files at the root are mounted into the init directory."""
        schema = tmp_path / "schema.sql"
        schema.write_text("CREATE TABLE t();")

        postgres = services.build_compose(tmp_path, node_report, [schema])["services"]["postgres"]
        assert postgres["volumes"] == [
            "../schema.sql:/docker-entrypoint-initdb.d/schema.sql:ro"
        ]

    def test_empty_init_mount_without_schema(self, tmp_path, node_report):
        """Without schema files an empty read-only directory is mounted."""
        postgres = services.build_compose(tmp_path, node_report, [])["services"]["postgres"]
        assert postgres["volumes"] == ["./initdb:/docker-entrypoint-initdb.d:ro"]

    def test_redis_has_no_volumes(self, tmp_path, node_report):
        """Redis needs no init mount."""
        redis = services.build_compose(tmp_path, node_report, [])["services"]["redis"]
        assert "volumes" not in redis
        assert redis["healthcheck"]["test"] == ["CMD", "redis-cli", "ping"]

    def test_unknown_project_warns_app_cannot_build(self, tmp_path, caplog):
        """Unknown reports still get an app block, with a warning."""
        compose = services.build_compose(tmp_path, ProjectReport(), [])

        assert compose["services"]["app"]["build"]["dockerfile"] == ".devup/Dockerfile"
        assert "No Dockerfile is generated for Unknown projects" in caplog.text

    def test_known_stack_does_not_warn(self, tmp_path, node_report, caplog):
        """Stacks with a Dockerfile template build without warnings."""
        services.build_compose(tmp_path, node_report, [])
        assert "No Dockerfile" not in caplog.text

    def test_templates_are_not_mutated(self, tmp_path, node_report):
        """Building twice gives identical documents."""
        first = services.build_compose(tmp_path, node_report, [])
        second = services.build_compose(tmp_path, node_report, [])
        assert first == second

    def test_project_name(self, tmp_path):
        """The compose project name is derived from the directory."""
        project = tmp_path / "My App.v2"
        project.mkdir()
        assert services.compose_project_name(project) == "myappv2"


class TestRenderCompose:
    """Test render_compose()."""

    def test_round_trips_through_yaml(self, tmp_path, node_report):
        """The rendered YAML parses back to the same document."""
        compose = services.build_compose(tmp_path, node_report, [])
        text = services.render_compose(compose)
        assert yaml.safe_load(text) == compose
        assert text.index("app:") < text.index("postgres:")

    @pytest.mark.asyncio
    async def test_write_compose_creates_init_dir(self, tmp_path, java_report):
        """write_compose writes the manifest and the empty init directory."""
        compose = services.build_compose(tmp_path, java_report, [])
        path = await services.write_compose(tmp_path, compose)

        assert path == tmp_path / "docker-compose.yml"
        assert (tmp_path / "initdb").is_dir()
        parsed = yaml.safe_load(path.read_text())
        assert parsed["services"]["mongodb"]["networks"]["default"]["aliases"] == ["mongo"]


def _stream(*chunks: bytes) -> asyncio.StreamReader:
    reader = asyncio.StreamReader()
    for chunk in chunks:
        reader.feed_data(chunk)
    reader.feed_eof()
    return reader


def _fake_process(stdout: list[bytes], stderr: list[bytes], returncode: int = 0) -> MagicMock:
    process = MagicMock()
    process.pid = 4242
    process.stdout = _stream(*stdout)
    process.stderr = _stream(*stderr)
    process.wait = AsyncMock(return_value=returncode)
    return process


def _version_check(returncode: int) -> MagicMock:
    check = MagicMock()
    check.wait = AsyncMock(return_value=returncode)
    return check


@pytest.fixture
def generated_project(tmp_path):
    """A project root with a generated compose file."""
    output_dir = tmp_path / ".devup"
    output_dir.mkdir()
    (output_dir / "docker-compose.yml").write_text("services: {}\n")
    return tmp_path


class TestLaunch:
    """Test launch() and LaunchHandle."""

    @pytest.mark.asyncio
    async def test_missing_compose_file(self, tmp_path):
        """Launching before generating raises LaunchError."""
        with pytest.raises(LaunchError, match="not found"):
            await services.launch(tmp_path)

    @pytest.mark.asyncio
    async def test_uses_compose_plugin(self, generated_project):
        """docker compose is used when the plugin answers."""
        up = _fake_process([b"Building app\n"], [])
        spawn = AsyncMock(side_effect=[_version_check(0), up])

        with patch("devup.activities.services.asyncio.create_subprocess_exec", spawn):
            handle = await services.launch(generated_project)
            chunks = [chunk async for chunk in handle]

        args, kwargs = spawn.call_args
        assert list(args) == [
            "docker",
            "compose",
            "-f",
            "docker-compose.yml",
            "up",
            "-d",
            "--build",
        ]
        assert kwargs["cwd"] == str(generated_project / ".devup")
        assert kwargs["start_new_session"] is True
        assert handle.command[:2] == ["docker", "compose"]
        assert chunks == [services.LogChunk(stream="stdout", text="Building app\n")]

    @pytest.mark.asyncio
    async def test_falls_back_to_standalone_binary(self, generated_project):
        """docker-compose is used when the plugin check fails to spawn."""
        up = _fake_process([], [])
        spawn = AsyncMock(side_effect=[FileNotFoundError("docker"), up])

        with patch("devup.activities.services.asyncio.create_subprocess_exec", spawn):
            handle = await services.launch(generated_project)
            assert [chunk async for chunk in handle] == []

        assert spawn.call_args.args[0] == "docker-compose"
        assert handle.command[0] == "docker-compose"

    @pytest.mark.asyncio
    async def test_falls_back_when_plugin_exits_nonzero(self, generated_project):
        """A failing `docker compose version` also means standalone."""
        spawn = AsyncMock(side_effect=[_version_check(1), _fake_process([], [])])

        with patch("devup.activities.services.asyncio.create_subprocess_exec", spawn):
            handle = await services.launch(generated_project)
            assert [chunk async for chunk in handle] == []

        assert handle.command[0] == "docker-compose"

    @pytest.mark.asyncio
    async def test_spawn_failure_raises(self, generated_project):
        """No container engine at all surfaces as LaunchError."""
        spawn = AsyncMock(side_effect=FileNotFoundError("no such file"))

        with patch("devup.activities.services.asyncio.create_subprocess_exec", spawn):
            with pytest.raises(LaunchError, match="Could not start docker-compose"):
                await services.launch(generated_project)

    @pytest.mark.asyncio
    async def test_streams_both_outputs_and_exit_code(self, generated_project):
        """stdout and stderr both arrive; build failures are just output."""
        up = _fake_process([b"out-1\n", b"out-2\n"], [b"error: build failed\n"], returncode=1)
        spawn = AsyncMock(side_effect=[_version_check(0), up])

        with patch("devup.activities.services.asyncio.create_subprocess_exec", spawn):
            handle = await services.launch(generated_project)
            chunks = [chunk async for chunk in handle]
            exit_code = await handle.wait()

        stdout = "".join(c.text for c in chunks if c.stream == "stdout")
        stderr = "".join(c.text for c in chunks if c.stream == "stderr")
        assert stdout == "out-1\nout-2\n"
        assert stderr == "error: build failed\n"
        assert exit_code == 1
        assert handle.pid == 4242

    @pytest.mark.asyncio
    async def test_split_utf8_is_decoded(self, generated_project):
        """Multi-byte characters split across reads decode correctly."""
        data = "✓ done\n".encode()
        up = _fake_process([data[:1], data[1:]], [])
        spawn = AsyncMock(side_effect=[_version_check(0), up])

        with patch("devup.activities.services.asyncio.create_subprocess_exec", spawn):
            handle = await services.launch(generated_project)
            text = "".join([chunk.text async for chunk in handle])

        assert text == "✓ done\n"

    @pytest.mark.asyncio
    async def test_close_stops_iteration(self, generated_project):
        """Closing the handle ends iteration without waiting for EOF."""
        process = MagicMock()
        process.stdout = asyncio.StreamReader()
        process.stderr = asyncio.StreamReader()
        process.wait = AsyncMock(return_value=0)
        spawn = AsyncMock(side_effect=[_version_check(0), process])

        with patch("devup.activities.services.asyncio.create_subprocess_exec", spawn):
            handle = await services.launch(generated_project)

        process.stdout.feed_data(b"first\n")
        received = []
        async for chunk in handle:
            received.append(chunk.text)
            handle.close()

        assert received == ["first\n"]
        # output keeps draining after close
        process.stdout.feed_data(b"second\n")
        process.stdout.feed_eof()
        process.stderr.feed_eof()
        await asyncio.gather(*handle._readers)
        assert process.stdout.at_eof()


def test_report_order_is_preserved(tmp_path):
    """Blocks follow the report's service order, not a fixed one."""
    report = ProjectReport(services=("redis", "mongodb", "mysql"))
    compose = services.build_compose(tmp_path, report, [])
    assert list(compose["services"]) == ["app", "redis", "mongodb", "mysql"]
