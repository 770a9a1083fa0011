"""Build pipeline.

Turns a stack's compute units into tagged container images:
- create_build_scheduler(): plan staging plus parallel image builds
- BuildImageTask: build one unit's image via the build daemon
- StageStackTask / Stager: prepare build contexts
- consume_build_events(): follow a daemon event stream to an image id
"""

from stackbuild.build._archive import is_excluded, pack_context, pack_files
from stackbuild.build._pipeline import (
    BuildImageTask,
    consume_build_events,
    normalize_message,
    strip_digest_algorithm,
)
from stackbuild.build._plan import (
    BUILD_GROUP_TITLE,
    create_build_scheduler,
    image_key,
    images_from_context,
    validate_units,
)
from stackbuild.build._staging import STAGED_CONTEXTS_KEY, StageStackTask, Stager

__all__ = [
    "BUILD_GROUP_TITLE",
    "BuildImageTask",
    "STAGED_CONTEXTS_KEY",
    "StageStackTask",
    "Stager",
    "consume_build_events",
    "create_build_scheduler",
    "image_key",
    "images_from_context",
    "is_excluded",
    "normalize_message",
    "pack_context",
    "pack_files",
    "strip_digest_algorithm",
    "validate_units",
]
