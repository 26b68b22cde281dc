from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..services import catalog
from .schemas_limits import CategoryOut, CategoryListOut

router = APIRouter(prefix="/limits", tags=["limits"])


@router.get("/categories", response_model=CategoryListOut)
def list_categories(db: Session = Depends(get_db)):
    """
    The whole limit catalog: categories, their subcategories and limits,
    each level ordered by sort_order.
    """
    return CategoryListOut(categories=[CategoryOut.model_validate(c) for c in catalog.list_categories(db)])
