from typing import Optional, List
from datetime import datetime

from sqlmodel import Field, Column, DateTime
from sqlalchemy import JSON

from backoffice.models.base_model import BaseTable


class Event(BaseTable, table=True):
    __tablename__ = "events"

    title: str = Field(index=True, nullable=False)
    description: Optional[str] = Field(default=None)
    start_date: datetime = Field(sa_column=Column(DateTime, nullable=False, index=True))
    end_date: datetime = Field(sa_column=Column(DateTime, nullable=False, index=True))
    address: Optional[str] = Field(default=None)
    postal_code: Optional[str] = Field(default=None)
    city: Optional[str] = Field(default=None, index=True)
    country: Optional[str] = Field(default=None)
    latitude: Optional[float] = Field(default=None)
    longitude: Optional[float] = Field(default=None)
    image: Optional[str] = Field(default=None)
    # event category, used as the single keyword of internal events
    type: Optional[str] = Field(default=None)
    phone: Optional[str] = Field(default=None)
    email: Optional[str] = Field(default=None)
    social_links: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
