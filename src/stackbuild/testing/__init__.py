from stackbuild.testing.daemon import FakeBuildDaemon, Submission, success_events
from stackbuild.testing.helper_tasks import FailingTask, SlowTask, StaticTask
from stackbuild.testing.sinks import RecordingSink

__all__ = [
    "FailingTask",
    "FakeBuildDaemon",
    "RecordingSink",
    "SlowTask",
    "StaticTask",
    "Submission",
    "success_events",
]
