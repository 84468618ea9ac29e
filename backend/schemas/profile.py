from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

class ProfileCreate(BaseModel):
    display_name: str = Field(..., max_length=40)
    avatar_url: Optional[str] = Field(None, max_length=500)
    bio: Optional[str] = Field(None, max_length=500)
    favorite_camera: Optional[str] = Field(None, max_length=100)

class ProfileUpdate(BaseModel):
    display_name: Optional[str] = Field(None, max_length=40)
    avatar_url: Optional[str] = Field(None, max_length=500)
    bio: Optional[str] = Field(None, max_length=500)
    favorite_camera: Optional[str] = Field(None, max_length=100)

class ProfileOut(BaseModel):
    user_id: int
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    favorite_camera: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class DisplayNameAvailability(BaseModel):
    display_name: str
    valid: bool
    available: bool
    message: Optional[str] = None
