from __future__ import annotations

from datetime import datetime
from typing import Annotated
from uuid import UUID

from sqlalchemy import DateTime, text
from sqlalchemy.orm import DeclarativeBase, mapped_column

# Column shapes repeated by nearly every table. Defaults live in the database
# so rows inserted by raw SQL (worker, migrations) get them too.
uuid_pk = Annotated[
    UUID, mapped_column(primary_key=True, server_default=text("gen_random_uuid()"))
]
created_ts = Annotated[
    datetime, mapped_column(DateTime(timezone=True), nullable=False, server_default=text("now()"))
]
# Kept current by the set_updated_at() trigger.
updated_ts = Annotated[
    datetime, mapped_column(DateTime(timezone=True), nullable=False, server_default=text("now()"))
]


class Base(DeclarativeBase):
    type_annotation_map = {datetime: DateTime(timezone=True)}
