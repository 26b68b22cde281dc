from typing import List, Optional

from pydantic import BaseModel


class LimitOut(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    sort_order: Optional[int] = None

    class Config:
        from_attributes = True


class SubcategoryOut(BaseModel):
    id: str
    name: str
    sort_order: Optional[int] = None
    limits: List[LimitOut]

    class Config:
        from_attributes = True


class CategoryOut(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    image_url: Optional[str] = None
    sort_order: Optional[int] = None
    subcategories: List[SubcategoryOut]

    class Config:
        from_attributes = True


class CategoryListOut(BaseModel):
    categories: List[CategoryOut]
