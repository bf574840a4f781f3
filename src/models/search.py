"""Pydantic models for portal search filters."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field

# Upstream search parameters, name -> value
SearchQuery = Dict[str, str]


# ---------------------------------------------------------------------------
# Buckets
# ---------------------------------------------------------------------------

class DateBucket(str, Enum):
    ANY = "any"
    YESTERDAY = "yesterday"
    LAST_WEEK = "lastWeek"
    LAST_MONTH = "lastMonth"
    LAST_YEAR = "lastYear"


class SizeBucket(str, Enum):
    ANY = "any"
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    HUGE = "huge"
    GIGANTIC = "gigantic"
    MASSIVE = "massive"


# ---------------------------------------------------------------------------
# Type flags
# ---------------------------------------------------------------------------

# Attribute name -> extensions, in expansion order
EXTENSION_GROUPS: Dict[str, tuple[str, ...]] = {
    "boxnote": ("boxnote",),
    "boxcanvas": ("boxcanvas",),
    "pdf": ("pdf",),
    "document": ("doc", "docx", "txt", "rtf", "odt", "gdoc"),
    "spreadsheet": ("xls", "xlsx", "csv", "ods", "gsheet"),
    "presentation": ("ppt", "pptx", "odp", "gslide"),
    "image": ("jpg", "jpeg", "png", "gif", "bmp", "svg", "tiff", "webp"),
    "audio": ("mp3", "wav", "aac", "m4a", "ogg", "wma"),
    "video": ("mp4", "mov", "avi", "wmv", "mkv", "webm", "flv"),
    "drawing": ("ai", "psd", "eps", "indd"),
    "three_d": ("obj", "stl", "fbx", "dae", "3ds"),
}


class TypeFlags(BaseModel):
    """Container flags plus extension-group flags. Strictly boolean."""

    model_config = ConfigDict(strict=True, frozen=True, populate_by_name=True)

    folder: bool = False
    file: bool = False
    boxnote: bool = False
    boxcanvas: bool = False
    pdf: bool = False
    document: bool = False
    spreadsheet: bool = False
    presentation: bool = False
    image: bool = False
    audio: bool = False
    video: bool = False
    drawing: bool = False
    three_d: bool = Field(default=False, alias="threeD")

    def selected_groups(self) -> list[str]:
        return [name for name in EXTENSION_GROUPS if getattr(self, name)]


# ---------------------------------------------------------------------------
# Metadata filter / full filter spec
# ---------------------------------------------------------------------------

class MetadataFilter(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    scope: str = "enterprise"
    template_key: str = Field(default="", alias="templateKey")
    field_values: Dict[str, Any] = Field(default_factory=dict, alias="data")

    def meaningful_values(self) -> Dict[str, Any]:
        """Field values actually selected: present, not "any", not empty."""
        return {
            key: value
            for key, value in self.field_values.items()
            if value is not None and value != "any" and value != ""
        }


class FilterSpec(BaseModel):
    """Structured search filter as chosen in the portal's filter panel."""

    model_config = ConfigDict(frozen=True)

    keyword: str = ""
    type_flags: TypeFlags = Field(default_factory=TypeFlags)
    date_bucket: DateBucket = DateBucket.ANY
    size_bucket: SizeBucket = SizeBucket.ANY
    owner: str = ""
    tags: str = ""
    metadata_filter: MetadataFilter | None = None
