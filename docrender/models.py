"""Request, artifact and content block models."""

import base64
import binascii
import secrets
import string
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

PDF_MIME_TYPE = "application/pdf"
DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

_ID_ALPHABET = string.digits + string.ascii_lowercase


def new_request_id() -> str:
    """Return an id of the form ``doc-<epoch ms>-<7 base36 chars>``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(7))
    return f"doc-{int(time.time() * 1000)}-{suffix}"


class DocumentType(str, Enum):
    PDF = "pdf"
    DOCX = "docx"

    @property
    def mime_type(self) -> str:
        return PDF_MIME_TYPE if self is DocumentType.PDF else DOCX_MIME_TYPE

    @property
    def extension(self) -> str:
        return self.value


class WatermarkKind(str, Enum):
    TEXT = "text"
    IMAGE = "image"


def decode_base64(payload: str) -> bytes:
    """Strictly decode a base64 string, raising ValueError on bad input."""
    try:
        data = base64.b64decode("".join(payload.split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError("Watermark image must be a valid base64 string") from e
    if not data:
        raise ValueError("Watermark image must be a valid base64 string")
    return data


class WatermarkSpec(BaseModel):
    """Watermark requested by the caller.

    Accepts the wire names ``type``/``content`` as well as ``kind``/``payload``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: WatermarkKind = Field(..., alias="type")
    payload: str = Field(..., alias="content")

    @model_validator(mode="after")
    def check_payload(self):
        if self.kind is WatermarkKind.IMAGE:
            decode_base64(self.payload)
        elif not self.payload.strip():
            raise ValueError("Watermark text must not be empty")
        return self

    @property
    def image_bytes(self) -> bytes:
        return decode_base64(self.payload)


PlaceholderValue = Union[bool, int, float, str]


class DocumentRequest(BaseModel):
    """One render job. Immutable once accepted."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    header: str
    content: str
    footer: str = ""
    document_type: DocumentType = Field(..., alias="documentType")
    watermark: Optional[WatermarkSpec] = None
    placeholders: Optional[dict[str, PlaceholderValue]] = None
    request_id: str = Field(default_factory=new_request_id, alias="requestId")

    @field_validator("request_id")
    @classmethod
    def sanitize_request_id(cls, v):
        """Keep the id usable as a filename."""
        cleaned = "".join(ch for ch in str(v) if ch.isalnum() or ch in "-_.")
        if not cleaned.strip("."):
            raise ValueError("requestId must contain filename-safe characters")
        return cleaned


@dataclass
class RenderedArtifact:
    """Finished document handed back to the caller."""

    data: bytes
    mime_type: str
    filename: str
    compressed: bool = False

    def __len__(self) -> int:
        return len(self.data)


# Content blocks, produced by docrender.blocks and consumed by the DOCX assembler


@dataclass(frozen=True)
class Paragraph:
    text: str


@dataclass(frozen=True)
class Heading:
    level: int
    text: str


@dataclass(frozen=True)
class ListBlock:
    items: tuple[str, ...]
    ordered: bool = False


@dataclass(frozen=True)
class Table:
    rows: tuple[tuple[str, ...], ...]

    @property
    def column_count(self) -> int:
        return max((len(row) for row in self.rows), default=0)


@dataclass(frozen=True)
class ImageBlock:
    source: str
    data: bytes = field(repr=False)
    width: Optional[int] = None
    height: Optional[int] = None
    inline: bool = False


@dataclass(frozen=True)
class PageBreak:
    pass


ContentBlock = Union[Paragraph, Heading, ListBlock, Table, ImageBlock, PageBreak]


@dataclass(frozen=True)
class Page:
    """Blocks between two explicit page-break markers, in document order."""

    index: int
    blocks: tuple[ContentBlock, ...] = ()

    @property
    def number(self) -> int:
        return self.index + 1
