# chatorder/menu.py
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .models import MENU_CATEGORIES, MenuItem

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parent.parent / "data"


def load_menu_file(path: str | Path) -> list[dict[str, Any]]:
    """Supports both schemas:
    - Flat: menu["items"] top-level
    - Grouped: categories[*]["items"], category taken from the group name
    """
    menu_path = Path(path)
    if not menu_path.exists():
        raise FileNotFoundError(f"Menu seed file not found: {menu_path}")

    try:
        menu = json.loads(menu_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {menu_path}: {e}") from e

    out: list[dict[str, Any]] = []
    for it in (menu.get("items") or []):
        if isinstance(it, dict):
            out.append(it)

    for cat in (menu.get("categories") or []):
        if not isinstance(cat, dict):
            continue
        cname = str(cat.get("id") or cat.get("name") or "").strip().lower()
        for it in (cat.get("items") or []):
            if isinstance(it, dict):
                out.append({"category": cname, **it})

    return out


def _clean_item(raw: dict[str, Any]) -> dict[str, Any] | None:
    name = str(raw.get("name") or "").strip()
    if not name:
        return None
    try:
        price = round(float(raw.get("price", 0) or 0), 2)
    except (TypeError, ValueError):
        return None
    if price < 0:
        return None

    category = str(raw.get("category") or "main").strip().lower()
    if category not in MENU_CATEGORIES:
        category = "main"

    return {
        "name": name,
        "price": price,
        "category": category,
        "description": str(raw.get("description") or "").strip(),
        "is_available": bool(raw.get("is_available", raw.get("isAvailable", True))),
    }


def seed_menu(db: Session, items: list[dict[str, Any]]) -> int:
    """Insert menu items if the menu table is still empty. Returns rows added."""
    existing = db.scalar(select(func.count()).select_from(MenuItem)) or 0
    if existing:
        return 0

    added = 0
    for raw in items:
        clean = _clean_item(raw)
        if clean is None:
            logger.warning("Skipping invalid menu entry: %r", raw)
            continue
        db.add(MenuItem(**clean))
        added += 1

    db.commit()
    logger.info("Seeded %d menu items", added)
    return added
