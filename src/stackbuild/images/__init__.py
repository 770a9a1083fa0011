"""Image identity and tag naming."""

from pydantic import BaseModel, ConfigDict

from stackbuild.images._tags import check_tag_collisions, image_tag, sanitize


class Image(BaseModel):
    """A successfully built image.

    Attributes:
        id: Content-addressed identifier, without its algorithm prefix.
        tag: The tag the image was built under.
        unit_name: Name of the compute unit it was built from.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    tag: str
    unit_name: str


__all__ = [
    "Image",
    "check_tag_collisions",
    "image_tag",
    "sanitize",
]
