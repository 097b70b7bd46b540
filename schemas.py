"""
Data Schemas

Pydantic models for the records kept in the key/value store and for the
request bodies the API accepts.

Stored documents use camelCase keys (preferredCurrency, renewalDate, ...);
attributes are snake_case and mapped through aliases:
- User -> "user:<email>" and "user:id:<id>"
- Subscription -> list under "subscriptions:<email>"
"""

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.networks import validate_email
from pydantic.alias_generators import to_camel

from currencies import CURRENCY_CODES, is_known_currency


CategoryName = Literal["Entertainment", "Productivity", "Health", "Education", "Utilities", "Other"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def _check_currency(value: str) -> str:
    if not is_known_currency(value):
        raise ValueError(f"Unknown currency '{value}', expected one of {', '.join(CURRENCY_CODES)}")
    return value


# Category display config (not persisted per user)

class Category(BaseModel):
    name: CategoryName
    color: str = Field(..., description="Hex color used in charts and badges")
    icon: str


CATEGORIES: List[Category] = [
    Category(name="Entertainment", color="#EF4444", icon="🎬"),
    Category(name="Productivity", color="#3B82F6", icon="💼"),
    Category(name="Health", color="#10B981", icon="❤️"),
    Category(name="Education", color="#8B5CF6", icon="📚"),
    Category(name="Utilities", color="#F59E0B", icon="⚡"),
    Category(name="Other", color="#6B7280", icon="📦"),
]

CATEGORY_NAMES = tuple(c.name for c in CATEGORIES)


# Stored records

class User(CamelModel):
    """
    Local mirror of an identity-provider account
    Keys: "user:<email>" and "user:id:<id>"
    """
    id: str = Field(..., description="Provider-assigned user id")
    name: str
    email: str
    preferred_currency: str = "USD"
    created_at: datetime
    auth_provider: str = Field("email", description="email|google")
    avatar: Optional[str] = None


class Subscription(CamelModel):
    """
    One recurring subscription owned by a single user
    Key: "subscriptions:<email>" (ordered list, insertion order)
    """
    id: str
    name: str
    cost: float = Field(..., gt=0, allow_inf_nan=False, description="Cost per month in the subscription's own currency")
    currency: str = "USD"
    renewal_date: date
    category: CategoryName = "Other"
    created_at: datetime
    updated_at: Optional[datetime] = None


# Request bodies

class SubscriptionCreate(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    name: str = Field(..., min_length=1)
    cost: float = Field(..., gt=0, allow_inf_nan=False)
    renewal_date: date
    category: CategoryName = "Other"
    currency: str = "USD"

    @field_validator("currency")
    @classmethod
    def known_currency(cls, value: str) -> str:
        return _check_currency(value)


class SubscriptionPatch(CamelModel):
    """Fields a client may change on an existing subscription; anything else is rejected"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    name: Optional[str] = Field(None, min_length=1)
    cost: Optional[float] = Field(None, gt=0, allow_inf_nan=False)
    renewal_date: Optional[date] = None
    category: Optional[CategoryName] = None
    currency: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def known_currency(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else _check_currency(value)

    @model_validator(mode="after")
    def no_explicit_nulls(self):
        for name in self.model_fields_set:
            if getattr(self, name) is None:
                raise ValueError(f"{to_camel(name)} cannot be null")
        return self

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class Credentials(BaseModel):
    email: str
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def valid_email(cls, value: str) -> str:
        # storage keys use the address exactly as the client sent it
        validate_email(value)
        return value


class SignupRequest(Credentials):
    name: str = Field(..., min_length=1)


class LoginRequest(Credentials):
    pass


class TokenRequest(BaseModel):
    access_token: str = Field(..., min_length=1)


class PreferencesUpdate(CamelModel):
    preferred_currency: str

    @field_validator("preferred_currency")
    @classmethod
    def known_currency(cls, value: str) -> str:
        return _check_currency(value)
