"""
Pydantic schemas for payloads returned by third-party services.

The station service is an ArcGIS MapServer query endpoint; the postal
lookup service returns a one-element list wrapping the post offices.
Both are parsed leniently: unknown fields are ignored and attribute
dictionaries are kept raw for the normalizer to pick apart.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class WrisGeometry(BaseModel):
    """ArcGIS point geometry"""
    model_config = ConfigDict(extra="ignore")

    x: Optional[float] = None
    y: Optional[float] = None


class WrisFeature(BaseModel):
    """One station row: free-form attributes plus optional geometry"""
    model_config = ConfigDict(extra="ignore")

    attributes: Dict[str, Any] = Field(default_factory=dict)
    geometry: Optional[WrisGeometry] = None


class WrisQueryResponse(BaseModel):
    """Query envelope; a missing features list means end of data.

    Features stay raw here and are validated one by one during
    normalization, so a single odd row cannot fail the whole page.
    """
    model_config = ConfigDict(extra="ignore")

    features: Optional[List[Dict[str, Any]]] = None
    error: Optional[Dict[str, Any]] = None


class PostOffice(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    pincode: Optional[str] = Field(None, alias="Pincode")
    name: Optional[str] = Field(None, alias="Name")
    district: Optional[str] = Field(None, alias="District")

    @field_validator("pincode", mode="before")
    @classmethod
    def pincode_as_text(cls, v):
        """Some offices come back with a numeric Pincode"""
        return None if v is None else str(v)


class PostalLookupResult(BaseModel):
    """Single entry of the postal lookup response list"""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    status: Optional[str] = Field(None, alias="Status")
    post_offices: Optional[List[PostOffice]] = Field(None, alias="PostOffice")

    @property
    def is_success(self) -> bool:
        return self.status == "Success" and bool(self.post_offices)
