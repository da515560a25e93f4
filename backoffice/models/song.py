from typing import Optional

from sqlmodel import Field

from backoffice.models.base_model import BaseTable


class Song(BaseTable, table=True):
    __tablename__ = "songs"

    title: str = Field(index=True, nullable=False)
    artist: Optional[str] = Field(default=None, index=True)
    region: Optional[str] = Field(default=None)
    language: Optional[str] = Field(default=None)
    theme: Optional[str] = Field(default=None)
    type: Optional[str] = Field(default=None)
    lyrics: Optional[str] = Field(default=None)
    image: Optional[str] = Field(default=None)
