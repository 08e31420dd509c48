"""Response envelopes shared by the admin API routers."""
from typing import Generic, TypeVar, List, Optional
from pydantic import BaseModel, computed_field

T = TypeVar("T")

class StandardResponse(BaseModel, Generic[T]):
    """Standard API response envelope."""
    status: str = "success"
    data: Optional[T] = None
    message: Optional[str] = None

class PaginatedResponse(BaseModel, Generic[T]):
    """Paginated listing envelope. ``has_more`` tells the admin UI whether to offer a next page."""
    data: List[T]
    total: int
    limit: int
    offset: int = 0
    status: str = "success"

    @computed_field
    @property
    def has_more(self) -> bool:
        return self.offset + len(self.data) < self.total
