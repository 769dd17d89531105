from datetime import datetime
from typing import Optional, Literal
from pydantic import BaseModel, ConfigDict, Field

CollectionStatus = Literal["scheduled", "in-progress", "completed", "rejected", "cancelled"]

class CollectionUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    scheduled_date: Optional[datetime] = Field(default=None, alias="scheduledDate")
    time_slot: Optional[str] = Field(default=None, alias="timeSlot")
    status: Optional[CollectionStatus] = None
    waste_level: Optional[int] = Field(default=None, alias="wasteLevel", ge=0, le=100)
    notes: Optional[str] = None
    collector_id: Optional[str] = Field(default=None, alias="collector")
