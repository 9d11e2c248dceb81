"""Data models for the draft manager.

Dataclasses for what the draft stores keep locally, pydantic models for what
crosses the wire to the server collaborators (upload and draft-autosave).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from pydantic import BaseModel, Field

from app.page import DraftFile


# ── Local drafts ─────────────────────────────────────────────────────────────


@dataclass
class FileDraftRecord:
    """One drafted file attachment, keyed by the file input's field name."""

    key: str
    blob: bytes
    name: str
    mime_type: str = ""
    last_modified: int = 0     # ms since epoch, as the browser reports it
    size: int = 0

    @classmethod
    def from_file(cls, key: str, file: DraftFile) -> FileDraftRecord:
        return cls(
            key=key,
            blob=bytes(file.data),
            name=file.name,
            mime_type=file.mime_type,
            last_modified=file.last_modified,
            size=file.size,
        )

    def to_file(self) -> DraftFile:
        """Materialize the record as a File object for the page."""
        return DraftFile(
            name=self.name,
            data=self.blob,
            mime_type=self.mime_type,
            last_modified=self.last_modified,
        )

    @property
    def is_image(self) -> bool:
        return bool(self.mime_type) and self.mime_type.startswith("image/")

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> FileDraftRecord:
        return cls(**{k: v for k, v in d.items() if k in cls.__dataclass_fields__})


# ── Draft-autosave payload ───────────────────────────────────────────────────


class GreetingDraft(BaseModel):
    title: str = ""
    content: str = ""
    display_order: int


class TechToolDraft(BaseModel):
    tool_type: str
    display_order: int
    is_active: int = 1


class CommunicationMethodDraft(BaseModel):
    method_type: str
    method_name: str
    method_url: str = ""
    method_id: str = ""
    is_active: int = 1
    display_order: int


class DraftForServer(BaseModel):
    """Structured projection of the visible form sent to the autosave endpoint.

    Scalar profile fields travel flattened at the top level (``extra``), the
    repeatable groups as nested lists. File contents are never included.
    """

    model_config = {"extra": "allow"}

    greetings: list[GreetingDraft] = Field(default_factory=list)
    tech_tools: list[TechToolDraft] = Field(default_factory=list)
    communication_methods: list[CommunicationMethodDraft] = Field(default_factory=list)


class AutosaveResponse(BaseModel):
    success: bool
    message: str = ""


# ── Upload endpoint ──────────────────────────────────────────────────────────


class UploadedFile(BaseModel):
    file_path: str
    file_name: str = ""
    file_type: str = ""
    was_resized: bool = False
    original_dimensions: Any = None
    final_dimensions: Any = None
    original_size_kb: float | None = None
    final_size_kb: float | None = None


class UploadResponse(BaseModel):
    success: bool
    message: str = ""
    data: UploadedFile | None = None
