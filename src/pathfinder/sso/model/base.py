from sqlalchemy import BigInteger, String, orm
from sqlalchemy.orm import mapped_column

from typing_extensions import Annotated

str255 = Annotated[str, 255]
str512 = Annotated[str, 512]
eveid = Annotated[int, 64]
guidpk = Annotated[str, mapped_column(String(512), primary_key=True)]


class Base(orm.DeclarativeBase):
    type_annotation_map = {
        str255: String(255),
        str512: String(512),
        eveid: BigInteger(),
        guidpk: String(512),
    }
