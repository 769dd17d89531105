from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

class Location(BaseModel):
    address: str
    latitude: float
    longitude: float

class BinCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(default=None, alias="userId")
    location: Location
    bin_type: str = Field(alias="binType", min_length=1)
    capacity: float = Field(gt=0)  # litres
    bin_name: Optional[str] = Field(default=None, alias="binName")

class BinUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    location: Optional[Location] = None
    bin_type: Optional[str] = Field(default=None, alias="binType", min_length=1)
    capacity: Optional[float] = Field(default=None, gt=0)
    is_active: Optional[bool] = Field(default=None, alias="isActive")
    bin_name: Optional[str] = Field(default=None, alias="binName")
