from pydantic import BaseModel

from turfbook.api.schemas.booking import Pagination
from turfbook.models.turf import TurfPublic


class TurfListResponse(BaseModel):
    count: int
    pagination: Pagination
    turfs: list[TurfPublic]
