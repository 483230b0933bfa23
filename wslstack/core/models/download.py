"""
DownloadTarget — one artifact to fetch through the mirrored downloader.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DownloadTarget(BaseModel):
    """An artifact with an ordered list of candidate URLs.

    A file at ``destination`` counts as valid only if it is larger than
    ``min_size_bytes`` AND passes the structural archive check.
    ``checksum`` (``sha256:<hex>``) is optional extra hardening.
    """

    model_config = ConfigDict(frozen=True)

    primary_url: str
    mirror_urls: list[str] = Field(default_factory=list)
    destination: Path
    min_size_bytes: int = 1_000_000
    checksum: str | None = None

    @field_validator("checksum")
    @classmethod
    def _checksum_format(cls, value: str | None) -> str | None:
        if value is not None and ":" not in value:
            raise ValueError("checksum must look like 'sha256:<hex>'")
        return value

    @property
    def name(self) -> str:
        return self.destination.name

    @property
    def urls(self) -> list[str]:
        """Primary first, then mirrors in the order supplied."""
        return [self.primary_url, *self.mirror_urls]
