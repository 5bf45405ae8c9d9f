# laxbay/schemas.py
from pydantic import BaseModel, Field, field_validator
from typing import Any, List, Optional
from datetime import datetime

CATEGORIES = [
    "Heads", "Shafts", "Complete Sticks", "Helmets", "Gloves", "Pads",
    "Cleats", "Bags", "Apparel", "Goalie", "Mesh/Strings", "Accessories",
]
MAX_PRICE = 100000


class ListingRules(BaseModel):
    """Field rules shared by create and partial update payloads."""

    @field_validator("title", "description", "location", check_fields=False)
    @classmethod
    def not_blank(cls, v):
        if v is not None and not str(v).strip():
            raise ValueError("All fields must be provided")
        return v

    @field_validator("category", check_fields=False)
    @classmethod
    def known_category(cls, v):
        # stored verbatim, no case folding
        if v is not None and v not in CATEGORIES:
            raise ValueError("Invalid category")
        return v


class PostingBase(ListingRules):
    title: str = Field(..., max_length=120)
    description: str = Field(..., max_length=5000)
    price: float = Field(..., ge=0, le=MAX_PRICE)
    category: str
    location: str = Field(..., max_length=120)


class PostingCreate(PostingBase):
    image: Optional[str] = None
    image_data: Optional[str] = None


class PostingUpdate(ListingRules):
    title: Optional[str] = Field(None, max_length=120)
    description: Optional[str] = Field(None, max_length=5000)
    price: Optional[float] = Field(None, ge=0, le=MAX_PRICE)
    category: Optional[str] = None
    location: Optional[str] = Field(None, max_length=120)
    image: Optional[str] = None
    image_data: Optional[str] = None


class PostingOut(BaseModel):
    id: int
    username: str
    title: str
    description: str
    price: float
    category: str
    location: str
    image: Optional[str] = None
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PostingCreated(BaseModel):
    message: str
    post: PostingOut


class RegisterRequest(BaseModel):
    firstName: str
    lastName: str
    email: str
    username: str
    password: str
    address: str
    city: str
    zipCode: str

    @field_validator("firstName", "lastName", "email", "username", "password", "address", "city", "zipCode")
    @classmethod
    def required(cls, v):
        if not str(v).strip():
            raise ValueError("All fields are required.")
        return v

    @field_validator("email")
    @classmethod
    def email_shape(cls, v):
        if "@" not in v or v.startswith("@") or v.endswith("@"):
            raise ValueError("Invalid email address.")
        return v

    @field_validator("password")
    @classmethod
    def password_length(cls, v):
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters.")
        return v


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserOut(BaseModel):
    id: int
    firstName: str
    lastName: str
    email: str
    username: str
    city: Optional[str] = None
    zipCode: Optional[str] = None
    role: str

    @classmethod
    def from_user(cls, user):
        return cls(
            id=user.id,
            firstName=user.first_name,
            lastName=user.last_name,
            email=user.email,
            username=user.username,
            city=user.city,
            zipCode=user.zip_code,
            role=user.role or "user",
        )


class PresignRequest(BaseModel):
    filename: str = ""
    contentType: str = ""


class PresignResponse(BaseModel):
    uploadUrl: str
    key: str
    publicUrl: str
    expiresIn: int


class ReindexRequest(BaseModel):
    stale_only: bool = True


class ChatMessage(BaseModel):
    role: str = "user"
    content: Any = ""


class ChatRequest(BaseModel):
    prompt: str = ""
    messages: List[ChatMessage] = []
    system: Optional[str] = None


class UsedItem(BaseModel):
    id: int
    title: str
    price: float
    location: str
    url: str


class ChatResponse(BaseModel):
    text: str
    usedItems: List[UsedItem]
    filters: dict
