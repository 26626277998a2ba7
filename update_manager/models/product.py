"""
Product model
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import DateTime
from datetime import datetime
from typing import Optional
from enum import Enum
import uuid

from update_manager.core.timeutil import utc_now


class ProductType(str, Enum):
    """Kind of product"""
    SERVER = "server"
    CLIENT = "client"


class Product(SQLModel, table=True):
    """A software product whose versions are managed here"""

    __tablename__ = "products"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    product_id: str = Field(
        max_length=100,
        unique=True,
        index=True,
        description="Business identifier, unique across products"
    )
    name: str = Field(max_length=255, description="Display name")
    type: ProductType = Field(index=True, description="Server or client product")
    description: Optional[str] = Field(default=None, max_length=2000)
    vendor: Optional[str] = Field(default=None, max_length=255)

    # Soft delete flag, products are never removed
    is_active: bool = Field(default=True, index=True)

    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)
