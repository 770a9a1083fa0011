import io
import tarfile
from pathlib import Path

import pytest

from stackbuild.build import (
    BuildImageTask,
    consume_build_events,
    is_excluded,
    normalize_message,
    pack_context,
    pack_files,
)
from stackbuild.daemon import BuildEvent
from stackbuild.exceptions import BuildFailedError, DaemonUnavailableError, TaskError
from stackbuild.images import Image
from stackbuild.stack import ComputeUnit, Provider
from stackbuild.testing import FakeBuildDaemon


async def event_stream(*records):
    for record in records:
        yield BuildEvent.model_validate(record)


def archive_names(archive: bytes) -> list[str]:
    with tarfile.open(fileobj=io.BytesIO(archive)) as tar:
        return sorted(tar.getnames())


@pytest.fixture
def context_dir(tmp_path: Path) -> Path:
    root = tmp_path / "ctx"
    (root / "src").mkdir(parents=True)
    (root / "src" / "index.ts").write_text("export {}\n")
    (root / "debug.log").write_text("noise\n")
    (root / "Dockerfile").write_text("FROM scratch\n")
    return root


class TestConsumeBuildEvents:
    @pytest.mark.asyncio
    async def test_progress_then_success(self):
        lines: list[str] = []

        image_id = await consume_build_events(
            event_stream(
                {"stream": "Step 1/2 : FROM scratch\n"},
                {"status": "Downloading", "progress": "[=>  ]"},
                {"aux": {"ID": "sha256:deadbeef"}},
            ),
            lines.append,
        )

        assert image_id == "deadbeef"
        assert lines == [
            "Step 1/2 : FROM scratch",
            "Downloading: [=>  ]",
            "Built sha256:deadbeef",
        ]

    @pytest.mark.asyncio
    async def test_error_message_joined_onto_one_line(self):
        with pytest.raises(BuildFailedError) as exc_info:
            await consume_build_events(
                event_stream(
                    {"stream": "Step 1/1 : RUN make\n"},
                    {
                        "errorDetail": {
                            "message": "The command '/bin/sh -c make'\n  returned\r\na non-zero code: 2\n"
                        }
                    },
                    {"aux": {"ID": "sha256:ignored"}},
                ),
                lambda line: None,
            )

        assert str(exc_info.value) == (
            "The command '/bin/sh -c make' returned a non-zero code: 2"
        )
        assert "\n" not in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_last_digest_wins(self):
        image_id = await consume_build_events(
            event_stream(
                {"aux": {"ID": "sha256:first"}},
                {"aux": {"ID": "sha256:second"}},
            ),
            lambda line: None,
        )
        assert image_id == "second"

    @pytest.mark.asyncio
    async def test_stream_without_result(self):
        with pytest.raises(BuildFailedError, match="without producing an image"):
            await consume_build_events(
                event_stream({"stream": "Step 1/1\n"}), lambda line: None
            )

    @pytest.mark.asyncio
    async def test_multi_line_stream_records_split(self):
        lines: list[str] = []
        await consume_build_events(
            event_stream(
                {"stream": "line one\nline two\n\n"}, {"aux": {"ID": "sha256:a"}}
            ),
            lines.append,
        )
        assert lines[:2] == ["line one", "line two"]

    def test_normalize_message(self):
        assert normalize_message("  a\n\n b  \n c") == "a b c"
        assert normalize_message("single") == "single"


class TestBuildImageTask:
    @pytest.mark.asyncio
    async def test_success_yields_image(self, context_dir: Path):
        daemon = FakeBuildDaemon(
            scripts={
                "mystack-hello": [
                    {"stream": "Step 1/1 : FROM scratch\n"},
                    {"aux": {"ID": "sha256:deadbeef"}},
                ]
            }
        )
        unit = ComputeUnit(name="hello", handler="src/index.ts", excludes=("*.log",))
        task = BuildImageTask(unit, "My Stack", Provider.AWS, context_dir, daemon)

        image = await task.run_aio()

        assert image == Image(id="deadbeef", tag="mystack-hello", unit_name="hello")
        (submission,) = daemon.submissions
        assert submission.tag == "mystack-hello"
        assert submission.build_args["PROVIDER"] == "aws"
        assert submission.dockerfile is None
        assert archive_names(submission.archive) == [
            "Dockerfile",
            "src",
            "src/index.ts",
        ]
        lines = [event.line async for event in task.progress]
        assert "Step 1/1 : FROM scratch" in lines

    @pytest.mark.asyncio
    async def test_explicit_tag_and_dockerfile(self, context_dir: Path):
        daemon = FakeBuildDaemon()
        unit = ComputeUnit(
            name="worker",
            kind="container",
            dockerfile="Dockerfile",
            tag="registry.local/worker:1",
        )

        image = await BuildImageTask(
            unit, "stack", Provider.LOCAL, context_dir, daemon
        ).run_aio()

        assert image.tag == "registry.local/worker:1"
        assert daemon.submissions[0].dockerfile == "Dockerfile"

    @pytest.mark.asyncio
    async def test_daemon_error_fails_task(self, context_dir: Path):
        daemon = FakeBuildDaemon(
            scripts={"stack-hello": [{"errorDetail": {"message": "no\nspace"}}]}
        )
        unit = ComputeUnit(name="hello", handler="index.ts")
        task = BuildImageTask(unit, "stack", Provider.LOCAL, context_dir, daemon)

        with pytest.raises(TaskError) as exc_info:
            await task.run_aio()

        assert isinstance(exc_info.value.cause, BuildFailedError)
        assert str(exc_info.value.cause) == "no space"
        with pytest.raises(RuntimeError):
            task.result

    @pytest.mark.asyncio
    async def test_unreachable_daemon(self, context_dir: Path):
        unit = ComputeUnit(name="hello", handler="index.ts")
        task = BuildImageTask(
            unit,
            "stack",
            Provider.LOCAL,
            context_dir,
            FakeBuildDaemon(unavailable=True),
        )

        with pytest.raises(TaskError) as exc_info:
            await task.run_aio()

        assert isinstance(exc_info.value.cause, DaemonUnavailableError)
        assert not isinstance(exc_info.value.cause, BuildFailedError)


class TestArchive:
    @pytest.mark.parametrize(
        "path, patterns, expected",
        [
            ("debug.log", ["*.log"], True),
            ("logs/debug.log", ["*.log"], True),
            ("node_modules/dep/index.js", ["node_modules/"], True),
            ("src/node_modules", ["node_modules"], True),
            ("src/index.ts", ["*.log", "node_modules/"], False),
            ("build/out.js", ["build/*.js"], True),
            ("src/build/out.js", ["build/*.js"], False),
            ("notes.md", ["# comment", "", "!notes.md"], False),
        ],
    )
    def test_is_excluded(self, path, patterns, expected):
        assert is_excluded(path, patterns) is expected

    def test_pack_context_honours_dockerignore(self, context_dir: Path):
        (context_dir / ".dockerignore").write_text("# dev only\nsrc\n")

        assert archive_names(pack_context(context_dir)) == [
            ".dockerignore",
            "Dockerfile",
            "debug.log",
        ]

    def test_pack_context_normalizes_ownership(self, context_dir: Path):
        with tarfile.open(fileobj=io.BytesIO(pack_context(context_dir))) as tar:
            assert {(m.uid, m.gid) for m in tar.getmembers()} == {(0, 0)}

    def test_pack_files(self):
        archive = pack_files({"Dockerfile": "FROM scratch\n"})

        with tarfile.open(fileobj=io.BytesIO(archive)) as tar:
            member = tar.extractfile("Dockerfile")
            assert member is not None
            assert member.read() == b"FROM scratch\n"
