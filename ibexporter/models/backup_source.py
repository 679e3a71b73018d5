"""Backup source and record models."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Callable


@dataclass(frozen=True)
class BackupSource:
    """One discovered backup folder."""

    device_name: str
    identifier: str  # Folder name, usually the device UDID
    path: Path | None = None

    @property
    def display_name(self) -> str:
        return f"{self.device_name} - {self.identifier}"


@dataclass(frozen=True)
class Record:
    """One file entry of a loaded backup."""

    domain: str  # e.g. "AppDomain-com.example.app"
    path: str  # Relative to the domain root
    length: int
    opener: Callable[[], BinaryIO] = field(repr=False, compare=False)

    def open(self) -> BinaryIO:
        """Open the record content as a readable binary stream."""
        return self.opener()
