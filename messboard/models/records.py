# FILE: messboard/models/records.py
"""
Record models
"""
from enum import Enum
from typing import Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class MenuType(str, Enum):
    """Menu category shown as a filter on the board"""
    VEG = "veg"
    NON_VEG = "non-veg"
    BUDGET = "budget"


class ImageRef(BaseModel):
    """Image attached to a record; id is the blob-store id"""
    url: Optional[str] = None
    id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("id", "publicId")
    )


class TimeRemaining(BaseModel):
    """Human-readable time left before expiry"""
    text: str
    urgent: bool


class RecordCreate(BaseModel):
    """Client submission; required fields are checked by the lifecycle engine"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: Optional[str] = None
    location: Optional[str] = None
    phone: Optional[str] = None
    menu_type: Optional[str] = None
    menu_text: Optional[str] = None
    price: Optional[str] = None
    date: Optional[str] = None
    image: Optional[ImageRef] = None


class Record(BaseModel):
    """Posted menu entry as persisted"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    location: str
    phone: str
    menu_type: Optional[MenuType] = None
    menu_text: str
    price: Optional[str] = None
    image: Optional[ImageRef] = None
    date: str
    created_at: int
    expires_at: int

    @field_validator("image")
    @classmethod
    def drop_empty_image(cls, v):
        # Legacy documents store image: {url: null, publicId: null}
        if v is not None and not v.url and not v.id:
            return None
        return v


class DecoratedRecord(Record):
    """Record plus remaining-time decoration, as returned to clients"""
    remaining: TimeRemaining
