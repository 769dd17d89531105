from pydantic import BaseModel, EmailStr, Field, ConfigDict
from typing import Optional, Literal

Role = Literal["user", "manager", "collector"]

class UserBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: Optional[str] = None
    email: EmailStr
    household_members: Optional[int] = Field(default=None, alias="householdMembers", ge=0)
    address: Optional[str] = None
    city: Optional[str] = None

class UserCreate(UserBase):
    password: str = Field(min_length=6)

class AdminUserCreate(UserCreate):
    role: Role = "user"

class UserUpdate(BaseModel):
    """Fields a user may change on their own profile."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: Optional[str] = None
    household_members: Optional[int] = Field(default=None, alias="householdMembers", ge=0)
    address: Optional[str] = None
    city: Optional[str] = None

class AdminUserUpdate(UserUpdate):
    email: Optional[EmailStr] = None
    role: Optional[Role] = None
    status: Optional[Literal["active", "inactive"]] = None

class User(BaseModel):
    """Authenticated caller as seen by route dependencies."""
    user_id: str
    email: str
    role: str = "user"
    name: Optional[str] = None
    status: str = "active"

    def owns_or_manages(self, user_id) -> bool:
        return self.role == "manager" or self.user_id == str(user_id)
