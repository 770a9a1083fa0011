"""Build event records reported by the build daemon."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ErrorDetail(BaseModel):
    model_config = ConfigDict(extra="allow")

    message: str = ""
    code: int | None = None


class BuildEvent(BaseModel):
    """One JSON record of the daemon's build stream.

    A record is either a progress record (``stream`` or ``status``), the
    success marker (``aux.ID`` holding the image digest) or the error marker
    (``errorDetail``/``error``).
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    stream: str | None = None
    status: str | None = None
    progress: str | None = None
    id: str | None = None
    aux: dict[str, Any] | None = None
    error: str | None = None
    error_detail: ErrorDetail | None = Field(default=None, alias="errorDetail")

    @property
    def digest(self) -> str | None:
        """The image digest of a success marker, e.g. ``sha256:abc``."""
        if self.aux and isinstance(self.aux.get("ID"), str):
            return self.aux["ID"]
        return None

    @property
    def error_message(self) -> str | None:
        if self.error_detail is not None and self.error_detail.message:
            return self.error_detail.message
        return self.error

    @property
    def is_error(self) -> bool:
        return self.error_message is not None

    def to_line(self) -> str:
        """Render a progress record as a single human-readable line."""
        if self.status:
            if self.progress:
                return f"{self.status}: {self.progress}"
            return self.status
        if self.stream:
            return self.stream.rstrip("\n")
        if self.digest:
            return f"Built {self.digest}"
        return ""
