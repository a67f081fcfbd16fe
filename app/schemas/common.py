from pydantic import BaseModel, Field
from app.core.config import settings

class PageParams(BaseModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=settings.default_page_size, ge=1, le=settings.max_page_size)

class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    pages: int
