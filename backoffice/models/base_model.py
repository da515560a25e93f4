from datetime import datetime, timezone
from uuid import uuid4
from sqlmodel import Field, SQLModel

from backoffice.utils.dates import to_naive_utc


def new_document_id() -> str:
    return uuid4().hex


def utc_now() -> datetime:
    # DateTime columns hold naive UTC
    return to_naive_utc(datetime.now(timezone.utc))


class BaseTable(SQLModel):
    # string ids so records keep the identifiers they had in the document store
    id: str = Field(default_factory=new_document_id, primary_key=True, index=True, max_length=64)
    created_at: datetime = Field(
        default_factory=utc_now,
        nullable=False,
        )
