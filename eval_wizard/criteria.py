"""
Built-in criteria catalog.

Loaded once from criteria.yaml and shared read-only by every run.
"""

from functools import lru_cache
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import yaml

from eval_wizard.models import Criterion

CATALOG_PATH = Path(__file__).with_name("criteria.yaml")


def load_catalog(path: Optional[Path] = None) -> Tuple[Criterion, ...]:
    """Load a criteria catalog from YAML."""
    with open(path or CATALOG_PATH, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return tuple(Criterion.from_dict(item) for item in data.get("criteria", []))


@lru_cache(maxsize=1)
def builtin_criteria() -> Tuple[Criterion, ...]:
    return load_catalog()


def get_criteria(ids: Iterable[str], extra: Iterable[Criterion] = ()) -> List[Criterion]:
    """
    Resolve criterion ids against the built-in catalog plus ``extra``
    (e.g. a project's calibration-derived criteria), in catalog order.
    Unknown ids are ignored.
    """
    wanted = set(ids)
    return [c for c in (*builtin_criteria(), *extra) if c.id in wanted]
