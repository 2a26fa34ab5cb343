"""
Pydantic models for validating OCI / Docker registry responses.

These models serve as a strict contract for the manifest and token JSON
documents, ensuring that any deviation from this structure is caught at the
infrastructure layer before layers are pulled.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Descriptor(BaseModel):
    """A content-addressed reference to a blob in the registry."""

    model_config = ConfigDict(populate_by_name=True)

    media_type: Optional[str] = Field(default=None, alias="mediaType")
    digest: str
    size: int
    annotations: Optional[Dict[str, str]] = None


class ImageManifest(BaseModel):
    """
    Represents a single-platform image manifest.

    Both the OCI and the Docker schema 2 formats share this shape; imgpkg
    bundles and images are pushed as such manifests.
    """

    model_config = ConfigDict(populate_by_name=True)

    schema_version: int = Field(alias="schemaVersion")
    media_type: Optional[str] = Field(default=None, alias="mediaType")
    config: Descriptor
    layers: List[Descriptor]


class TokenResponse(BaseModel):
    """Represents the answer of a registry token endpoint."""

    token: Optional[str] = None
    access_token: Optional[str] = None

    @property
    def value(self) -> Optional[str]:
        return self.token or self.access_token
