"""
Database Schemas for the Car Rental Marketplace

Each Pydantic model below describes a MongoDB collection. Attributes are
snake_case in Python and stored under their camelCase alias
(e.g., rental_price -> "rentalPrice"). Car and booking values are not
coerced or validated: whatever the client sends is what gets stored.
Unknown fields are kept as-is, and a client-supplied "_id" is accepted
but never written.

Collections: Car -> "cars", Booking -> "bookings", User -> "users".
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


class Document(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, extra="allow")

    id: Optional[Any] = Field(None, alias="_id", description="Ignored on write")

    def to_document(self, *exclude: str) -> Dict[str, Any]:
        """Fields the client actually sent, keyed as stored, minus `_id`."""
        data = self.model_dump(by_alias=True, exclude_unset=True)
        data.pop("_id", None)
        for key in exclude:
            data.pop(key, None)
        return data


class Car(Document):
    name: Optional[Any] = Field(None, description="Display name, e.g., Toyota Corolla")
    category: Optional[Any] = Field(None, description="sedan, suv, hatchback, ...")
    rental_price: Optional[Any] = Field(None, description="Price per day")
    image: Optional[Any] = Field(None, description="Image URL")
    description: Optional[Any] = None
    rating: Optional[Any] = None
    status: Optional[Any] = Field(None, description="Whether the car is available")
    provider_name: Optional[Any] = None
    provider_email: Optional[Any] = Field(None, description="Owner of the listing")
    created_at: Optional[Any] = None
    location: Optional[Any] = None


class Booking(Document):
    car_id: Optional[Any] = Field(None, description="Referenced car id (string)")
    user_email: Optional[Any] = Field(None, description="Email of the booking party")
    car_name: Optional[Any] = None
    car_image: Optional[Any] = None
    category: Optional[Any] = None
    rental_price: Optional[Any] = None
    booked_at: Optional[Any] = None


class User(Document):
    email: EmailStr = Field(..., description="Email address (unique by convention)")
    name: Optional[str] = None
    photo_url: Optional[str] = Field(None, alias="photoURL")


class ProfileUpdate(Document):
    name: Optional[str] = None
    photo_url: Optional[str] = Field(None, alias="photoURL")
