"""Local development environment.

- PrepareDevImagesTask: shared dev image per runtime family plus run targets
- RunTarget: command, volumes and image for one unit
- partition_units(): group function units by runtime family
"""

from stackbuild.dev._preparer import PrepareDevImagesTask, RunTarget, partition_units

__all__ = [
    "PrepareDevImagesTask",
    "RunTarget",
    "partition_units",
]
