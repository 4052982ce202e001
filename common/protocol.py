"""Wire message definitions for the directory and volume server HTTP APIs."""

from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class WireModel(BaseModel):
    """Base for JSON messages exchanged with the store (camelCase on the wire)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class VolumeAssignRequest(WireModel):
    """Form fields for POST /dir/assign."""
    count: int = 1
    replication: str = ""
    collection: str = ""
    ttl: str = ""
    data_center: str = Field("", alias="dataCenter")
    rack: str = ""
    data_node: str = Field("", alias="dataNode")

    def to_form(self) -> Dict[str, str]:
        """
        Encode as form values, omitting empty hints.

        Returns:
            Dictionary of form field name to value
        """
        form = {"count": str(self.count)}
        for key, value in self.model_dump(by_alias=True, exclude={"count"}).items():
            if value:
                form[key] = value
        return form


class AssignResult(WireModel):
    """Response of /dir/assign."""
    fid: str = ""
    url: str = ""
    public_url: str = Field("", alias="publicUrl")
    count: int = 0
    error: str = ""


class Location(WireModel):
    """One replica holder of a volume."""
    url: str = ""
    public_url: str = Field("", alias="publicUrl")


class LookupResult(WireModel):
    """Response of /dir/lookup, also the per-volume value of /vol/lookup."""
    volume_id: str = Field("", alias="volumeId")
    locations: List[Location] = Field(default_factory=list)
    error: str = ""

    @field_validator("volume_id", mode="before")
    @classmethod
    def _coerce_volume_id(cls, value):
        return "" if value is None else str(value)

    @field_validator("locations", mode="before")
    @classmethod
    def _coerce_locations(cls, value):
        return value or []


class UploadResult(WireModel):
    """Response of a multipart upload to a volume server."""
    name: str = ""
    size: int = 0
    error: str = ""


class DeleteResult(WireModel):
    """Per-fid outcome of a batch delete on a volume server."""
    fid: str = ""
    size: int = 0
    status: int = 0
    error: str = ""


class ChunkInfo(WireModel):
    """Location of one chunk within a chunked object."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    fid: str
    offset: int
    size: int


class ChunkManifest(WireModel):
    """
    Manifest stored as the content of a chunked object.

    Chunks are kept in offset order; the store reassembles the object by
    concatenating them.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    name: str = ""
    size: int = 0
    mime: str = ""
    chunks: List[ChunkInfo] = Field(default_factory=list)

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return self.model_dump_json().encode("utf-8")

    @classmethod
    def from_json(cls, data: bytes) -> "ChunkManifest":
        """Deserialize from JSON bytes."""
        return cls.model_validate_json(data)
