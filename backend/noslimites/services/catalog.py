"""
Limit catalog: seeding, duplicate repair and the read path.

Catalog identifiers are derived from the name path (uuid5), and rows are
inserted with ON CONFLICT DO NOTHING, so concurrent cold starts converge on
the same rows. ``repair_duplicate_catalog`` merges rows left behind by older
seeders that used random identifiers.
"""
import logging
import uuid
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from sqlalchemy.orm import Session, selectinload

from ..models.db import dialect_insert
from ..models.limit_models import LimitCategory, LimitSubcategory, Limit, UserLimit

logger = logging.getLogger(__name__)

CATALOG_PATH = Path(__file__).resolve().parent.parent / "data" / "limit_catalog.yaml"
CATALOG_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "https://noslimites.app/catalog")


def stable_id(*names: str) -> str:
    """Deterministic identifier for a catalog row from its name path."""
    return str(uuid.uuid5(CATALOG_NAMESPACE, "/".join(n.strip() for n in names)))


def load_yaml(path):
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def _insert_ignore(db: Session, model, rows: List[dict]) -> int:
    """INSERT ... ON CONFLICT DO NOTHING on the primary key."""
    if not rows:
        return 0
    insert = dialect_insert(db)
    result = db.execute(insert(model.__table__).values(rows).on_conflict_do_nothing(index_elements=["id"]))
    return result.rowcount or 0


def build_seed_rows(catalog: dict) -> Dict[str, List[dict]]:
    categories, subcategories, limits = [], [], []
    for cat_pos, cat in enumerate(catalog.get("categories") or [], start=1):
        cat_id = stable_id(cat["name"])
        categories.append({
            "id": cat_id,
            "name": cat["name"],
            "description": cat.get("description"),
            "icon": cat.get("icon"),
            "image_url": cat.get("image_url"),
            "sort_order": cat_pos,
        })
        for sub_pos, sub in enumerate(cat.get("subcategories") or [], start=1):
            sub_id = stable_id(cat["name"], sub["name"])
            subcategories.append({
                "id": sub_id,
                "category_id": cat_id,
                "name": sub["name"],
                "sort_order": sub_pos,
            })
            for lim_pos, lim in enumerate(sub.get("limits") or [], start=1):
                if isinstance(lim, str):
                    lim = {"name": lim}
                limits.append({
                    "id": stable_id(cat["name"], sub["name"], lim["name"]),
                    "subcategory_id": sub_id,
                    "name": lim["name"],
                    "description": lim.get("description"),
                    "image_url": lim.get("image_url"),
                    "sort_order": lim_pos,
                })
    return {"categories": categories, "subcategories": subcategories, "limits": limits}


def seed_catalog(db: Session, path: Optional[Path] = None) -> int:
    """Insert missing catalog rows. Safe to run repeatedly and concurrently."""
    rows = build_seed_rows(load_yaml(path or CATALOG_PATH))
    inserted = 0
    try:
        inserted += _insert_ignore(db, LimitCategory, rows["categories"])
        inserted += _insert_ignore(db, LimitSubcategory, rows["subcategories"])
        inserted += _insert_ignore(db, Limit, rows["limits"])
        db.commit()
    except Exception:
        db.rollback()
        raise
    if inserted:
        logger.info("Seeded %s catalog rows", inserted)
    else:
        logger.info("Catalog already seeded, nothing to insert.")
    return inserted


def _pick_canonical(rows, expected_id: str):
    for row in rows:
        if row.id == expected_id:
            return row
    return sorted(rows, key=lambda r: (r.sort_order if r.sort_order is not None else 0, r.id))[0]


def _remap_choices(db: Session, duplicate_id: str, canonical_id: str) -> int:
    """
    Point choices at the canonical limit. A choice that would collide with an
    existing (user, relationship, canonical limit) row is dropped.
    """
    dropped = 0
    for choice in db.query(UserLimit).filter(UserLimit.limit_id == duplicate_id).all():
        clash = (
            db.query(UserLimit.id)
            .filter(
                UserLimit.user_id == choice.user_id,
                UserLimit.relationship_id == choice.relationship_id,
                UserLimit.limit_id == canonical_id,
            )
            .first()
        )
        if clash:
            db.delete(choice)
            dropped += 1
        else:
            choice.limit_id = canonical_id
        db.flush()
    return dropped


def repair_duplicate_catalog(db: Session) -> int:
    """Merge catalog rows sharing a name path. Returns the number of rows removed."""
    removed = 0
    dropped_choices = 0
    try:
        # Categories
        by_name = defaultdict(list)
        for cat in db.query(LimitCategory).all():
            by_name[cat.name].append(cat)
        for name, cats in by_name.items():
            if len(cats) < 2:
                continue
            keep = _pick_canonical(cats, stable_id(name))
            for dup in cats:
                if dup is keep:
                    continue
                for sub in list(dup.subcategories):
                    sub.category = keep
                db.flush()
                db.delete(dup)
                removed += 1
        db.flush()

        # Subcategories, within each category
        for cat in db.query(LimitCategory).all():
            by_name = defaultdict(list)
            for sub in cat.subcategories:
                by_name[sub.name].append(sub)
            for name, subs in by_name.items():
                if len(subs) < 2:
                    continue
                keep = _pick_canonical(subs, stable_id(cat.name, name))
                for dup in subs:
                    if dup is keep:
                        continue
                    for lim in list(dup.limits):
                        lim.subcategory = keep
                    db.flush()
                    db.delete(dup)
                    removed += 1
        db.flush()

        # Limits, within each subcategory
        for sub in db.query(LimitSubcategory).all():
            by_name = defaultdict(list)
            for lim in sub.limits:
                by_name[lim.name].append(lim)
            for name, lims in by_name.items():
                if len(lims) < 2:
                    continue
                keep = _pick_canonical(lims, stable_id(sub.category.name, sub.name, name))
                for dup in lims:
                    if dup is keep:
                        continue
                    dropped_choices += _remap_choices(db, dup.id, keep.id)
                    db.delete(dup)
                    removed += 1
        db.commit()
    except Exception:
        db.rollback()
        raise

    if removed:
        logger.info(
            "Duplicate catalog data cleaned up: %s rows removed, %s conflicting choices dropped",
            removed,
            dropped_choices,
        )
    return removed


def list_categories(db: Session) -> List[LimitCategory]:
    """Full category > subcategory > limit tree, each level by sort_order."""
    return (
        db.query(LimitCategory)
        .options(selectinload(LimitCategory.subcategories).selectinload(LimitSubcategory.limits))
        .order_by(LimitCategory.sort_order.asc(), LimitCategory.name.asc())
        .all()
    )
