import io
import tarfile
from pathlib import Path

import pytest

from stackbuild.dev import PrepareDevImagesTask, RunTarget, partition_units
from stackbuild.exceptions import BuildFailedError, ConfigurationError, TaskError
from stackbuild.runtimes import JAVASCRIPT, PYTHON, TYPESCRIPT, family_for
from stackbuild.stack import ComputeUnit, Stack, UnitKind
from stackbuild.testing import FakeBuildDaemon


class TestPartitionUnits:
    def test_groups_functions_by_family(self, stack: Stack):
        groups = partition_units(stack.units)

        assert list(groups) == [TYPESCRIPT, PYTHON]
        assert [u.name for u in groups[TYPESCRIPT]] == ["hello", "orders"]
        assert [u.name for u in groups[PYTHON]] == ["report"]
        assert JAVASCRIPT not in groups

    def test_no_functions(self):
        container = ComputeUnit(
            name="c", kind=UnitKind.CONTAINER, dockerfile="Dockerfile"
        )
        assert partition_units([container]) == {}

    def test_unsupported_handler(self):
        with pytest.raises(ConfigurationError, match="main.rb"):
            partition_units([ComputeUnit(name="r", handler="main.rb")])


class TestRuntimeFamilies:
    def test_family_for(self):
        assert family_for(ComputeUnit(name="a", handler="a.ts")) is TYPESCRIPT
        assert family_for(ComputeUnit(name="b", handler="b.js")) is JAVASCRIPT
        assert family_for(ComputeUnit(name="c", handler="c.py")) is PYTHON
        assert family_for(ComputeUnit(name="d", handler="d.go")) is None

    def test_dev_dockerfile(self):
        dockerfile = TYPESCRIPT.dev_dockerfile()

        assert dockerfile.startswith("FROM node:alpine")
        assert "nodemon" in dockerfile
        assert "membrane-dev" in dockerfile
        assert "ENV MIN_WORKERS=0" in dockerfile
        assert "WORKDIR /app/" in dockerfile

    def test_watch_flag_on_windows(self, monkeypatch):
        monkeypatch.setattr("stackbuild.runtimes.platform.system", lambda: "Windows")
        assert "--legacy-watch" in JAVASCRIPT.dev_command("index.js")

    def test_watch_flag_elsewhere(self, monkeypatch):
        monkeypatch.setattr("stackbuild.runtimes.platform.system", lambda: "Linux")
        command = TYPESCRIPT.dev_command("index.ts")

        assert command[:3] == ["nodemon", "--watch", "/app/**"]
        assert command[-1] == "ts-node -T /app/index.ts"

    def test_python_watch_command(self):
        assert PYTHON.dev_command("main.py")[:2] == ["watchmedo", "auto-restart"]
        assert PYTHON.dev_command("main.py")[-1] == "/app/main.py"


class TestPrepareDevImagesTask:
    @pytest.mark.asyncio
    async def test_one_image_per_family(self, stack: Stack, stack_dir: Path):
        daemon = FakeBuildDaemon(
            scripts={
                "stackbuild-ts-dev": [{"aux": {"ID": "sha256:7500"}}],
                "stackbuild-py-dev": [{"aux": {"ID": "sha256:9900"}}],
            }
        )
        task = PrepareDevImagesTask(stack, daemon)

        targets = await task.run_aio()

        assert daemon.tags == ["stackbuild-ts-dev", "stackbuild-py-dev"]
        assert set(targets) == {"hello", "orders", "report"}
        hello = targets["hello"]
        assert isinstance(hello, RunTarget)
        assert hello.image.id == "7500"
        assert hello.image.tag == "stackbuild-ts-dev"
        assert hello.image.unit_name == "hello"
        assert hello.volumes == {
            "/app/": str((stack_dir / "functions" / "hello").resolve())
        }
        assert hello.cmd[0] == "nodemon"
        assert targets["report"].image.id == "9900"
        assert targets["report"].cmd[-1] == "/app/main.py"

    @pytest.mark.asyncio
    async def test_dev_image_context_is_only_the_dockerfile(self, stack: Stack):
        daemon = FakeBuildDaemon()
        await PrepareDevImagesTask(stack, daemon).run_aio()

        for submission in daemon.submissions:
            with tarfile.open(fileobj=io.BytesIO(submission.archive)) as tar:
                assert tar.getnames() == ["Dockerfile"]
            assert submission.build_args["PROVIDER"] == "local"

    @pytest.mark.asyncio
    async def test_family_without_units_is_not_built(self, stack_dir: Path):
        stack = Stack(
            name="s",
            directory=stack_dir,
            units=(
                ComputeUnit(name="report", context="functions/report", handler="main.py"),
            ),
        )
        daemon = FakeBuildDaemon()

        targets = await PrepareDevImagesTask(stack, daemon).run_aio()

        assert daemon.tags == ["stackbuild-py-dev"]
        assert list(targets) == ["report"]

    @pytest.mark.asyncio
    async def test_no_functions(self, stack_dir: Path):
        stack = Stack(
            name="s",
            directory=stack_dir,
            units=(
                ComputeUnit(
                    name="worker",
                    kind=UnitKind.CONTAINER,
                    context="worker",
                    dockerfile="Dockerfile",
                ),
            ),
        )
        daemon = FakeBuildDaemon()

        assert await PrepareDevImagesTask(stack, daemon).run_aio() == {}
        assert daemon.submissions == []

    @pytest.mark.asyncio
    async def test_failed_image_fails_everything(self, stack: Stack):
        daemon = FakeBuildDaemon(
            scripts={"stackbuild-py-dev": [{"error": "pip install failed"}]}
        )
        task = PrepareDevImagesTask(stack, daemon)

        with pytest.raises(TaskError) as exc_info:
            await task.run_aio()

        assert isinstance(exc_info.value.cause, BuildFailedError)
        with pytest.raises(RuntimeError):
            task.result
