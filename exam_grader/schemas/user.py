from typing import Literal

from pydantic import BaseModel, EmailStr, Field, field_validator

Role = Literal["student", "admin"]


class UserCreate(BaseModel):
    email: EmailStr
    # bcrypt only looks at the first 72 bytes
    password: str = Field(min_length=8, max_length=72)
    full_name: str | None = Field(default=None, max_length=255)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("full_name")
    @classmethod
    def blank_name_is_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class UserRead(BaseModel):
    id: int
    email: EmailStr
    full_name: str | None = None
    # the name stamped on results
    display_name: str
    role: Role

    class Config:
        from_attributes = True
