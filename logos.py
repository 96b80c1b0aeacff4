# -*- coding: utf-8 -*-
"""
Logo catalog

Loads the brand logo catalog from the car-logos dataset (bulk list) merged
with a small hand-curated local list, and implements the explorer queries
(search, sort, group by initial letter).
"""
import json
import logging
import os
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel

import config

logger = logging.getLogger(__name__)

DATASET_PUBLIC_PATH = '/car-logos-dataset'
LOGOS_PUBLIC_PATH = f'{DATASET_PUBLIC_PATH}/logos'
LOCAL_LOGOS_PUBLIC_PATH = f'{DATASET_PUBLIC_PATH}/local-logos'

SORT_ORDERS = ('name-asc', 'name-desc')


class LogoImages(BaseModel):
    thumb: str
    optimized: str
    original: str


class Logo(BaseModel):
    name: str
    slug: str
    images: LogoImages
    is_local: bool = False


# =============================================================================
# EXCLUSIONS
# =============================================================================

# Sub-brand / model logos that are not manufacturer marks
EXCLUDED_SLUGS = frozenset([
    'audi-sport',
    'bmw-m',
    'chevrolet-corvette',
    'ford-mustang',
    'mercedes-amg',
    'nissan-gt-r',
])

MODEL_SEGMENT_KEYWORDS = frozenset([
    'amg',
    'm',
    'rs',
    'gt',
    'gtr',
    'gt-r',
    'type-r',
    'sti',
    'srt',
    'svt',
    'sport',
    'performance',
    'corvette',
    'mustang',
])


def has_model_keyword(slug: str, name: str) -> bool:
    slug_lower = slug.lower()
    name_lower = name.lower()

    if slug_lower in MODEL_SEGMENT_KEYWORDS or name_lower in MODEL_SEGMENT_KEYWORDS:
        return True
    if 'gt-r' in slug_lower or 'gt-r' in name_lower:
        return True

    slug_tokens = [token for token in slug_lower.split('-') if token]
    name_tokens = [token for token in name_lower.replace('-', ' ').split() if token]
    return any(token in MODEL_SEGMENT_KEYWORDS for token in slug_tokens + name_tokens)


def is_excluded_logo(slug: str, name: str) -> bool:
    return slug.lower() in EXCLUDED_SLUGS or has_model_keyword(slug, name)


# =============================================================================
# LOADING
# =============================================================================

def read_json_list(path: str) -> List[Any]:
    """Read a JSON array; a missing or malformed file yields []."""
    if not os.path.isfile(path):
        logger.warning("Logo data not found: %s", path)
        return []
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.error("Could not read logo data %s: %s", path, e)
        return []
    if not isinstance(data, list):
        logger.error("Logo data %s is not a list", path)
        return []
    return data


def normalize_dataset_path(value: str) -> str:
    """'./thumb/bmw.png' -> '/car-logos-dataset/logos/thumb/bmw.png'"""
    cleaned = (value or '').replace('\\', '/').lstrip('./\\')
    return f'{LOGOS_PUBLIC_PATH}/{cleaned}'


def _dataset_logo(entry: Dict[str, Any]) -> Optional[Logo]:
    image = entry.get('image') or {}
    name, slug = entry.get('name'), entry.get('slug')
    if not isinstance(name, str) or not isinstance(slug, str) or not isinstance(image, dict):
        return None
    return Logo(
        name=name,
        slug=slug,
        images=LogoImages(
            thumb=normalize_dataset_path(image.get('localThumb', '')),
            optimized=normalize_dataset_path(image.get('localOptimized', '')),
            original=normalize_dataset_path(image.get('localOriginal', '')),
        ),
        is_local=False,
    )


def _local_logo(entry: Dict[str, Any]) -> Optional[Logo]:
    name, slug, file_name = entry.get('name'), entry.get('slug'), entry.get('fileName')
    if not isinstance(name, str) or not isinstance(slug, str) or not isinstance(file_name, str):
        return None
    path = f'{LOCAL_LOGOS_PUBLIC_PATH}/{file_name}'
    return Logo(
        name=name,
        slug=slug,
        images=LogoImages(thumb=path, optimized=path, original=path),
        is_local=True,
    )


def merge_logos(dataset: Sequence[Dict[str, Any]], locals_: Sequence[Dict[str, Any]]) -> List[Logo]:
    """
    Merge the two logo sources.

    Excluded logos are dropped; dataset entries come first and the first
    occurrence of a (case-insensitive) slug wins.
    """
    merged: List[Logo] = []
    for entries, convert in ((dataset, _dataset_logo), (locals_, _local_logo)):
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            logo = convert(entry)
            if logo is None or is_excluded_logo(logo.slug, logo.name):
                continue
            merged.append(logo)

    unique: Dict[str, Logo] = {}
    for logo in merged:
        unique.setdefault(logo.slug.lower(), logo)
    return list(unique.values())


def load_logos(dataset_root: Optional[str] = None) -> List[Logo]:
    root = dataset_root or config.LOGO_DATASET_ROOT
    dataset = read_json_list(os.path.join(root, 'logos', 'data.json'))
    locals_ = read_json_list(os.path.join(root, 'local-logos', 'metadata.json'))
    logos = merge_logos(dataset, locals_)
    logger.info("Loaded %d logos (%d dataset, %d local entries)", len(logos), len(dataset), len(locals_))
    return logos


class LogoCatalog:
    """Logo list loaded on first use and kept until invalidated."""

    def __init__(self, loader: Callable[[], List[Logo]] = load_logos):
        self._loader = loader
        self._logos: Optional[List[Logo]] = None

    def get(self) -> List[Logo]:
        logos = self._logos
        if logos is None:
            logos = self._loader()
            self._logos = logos
        return logos

    def get_by_slug(self, slug: str) -> Optional[Logo]:
        slug = slug.lower()
        for logo in self.get():
            if logo.slug.lower() == slug:
                return logo
        return None

    def invalidate(self):
        self._logos = None


# =============================================================================
# ASSET URLS
# =============================================================================

def get_asset_base_url() -> str:
    if config.ASSET_MODE != 'cdn':
        return ''
    return config.ASSET_BASE_URL.rstrip('/')


def build_asset_url(path: str) -> str:
    """Prefix a public path with the CDN base URL when ASSET_MODE=cdn."""
    normalized = path if path.startswith('/') else f'/{path}'
    return f'{get_asset_base_url()}{normalized}'


# =============================================================================
# EXPLORER QUERIES
# =============================================================================

def filter_logos(logos: Sequence[Logo], query: str = '') -> List[Logo]:
    """Case-insensitive substring search on name or slug."""
    needle = (query or '').strip().lower()
    if not needle:
        return list(logos)
    return [logo for logo in logos if needle in logo.name.lower() or needle in logo.slug.lower()]


def sort_logos(logos: Sequence[Logo], order: str = 'name-asc') -> List[Logo]:
    if order not in SORT_ORDERS:
        raise ValueError(f"Unknown sort order: {order}")
    return sorted(logos, key=lambda logo: (logo.name.casefold(), logo.name), reverse=order == 'name-desc')


def group_logos_by_letter(logos: Sequence[Logo], order: str = 'name-asc') -> List[Tuple[str, List[Logo]]]:
    """
    Group logos by the first letter of their name.

    Names not starting with A-Z go to '#', which is always last. Letter order
    follows the sort order; logos keep their input order within a group.
    """
    groups: Dict[str, List[Logo]] = {}
    for logo in logos:
        first = logo.name.strip()[:1].upper()
        key = first if 'A' <= first <= 'Z' and len(first) == 1 else '#'
        groups.setdefault(key, []).append(logo)

    letters = sorted(key for key in groups if key != '#')
    if order == 'name-desc':
        letters.reverse()
    if '#' in groups:
        letters.append('#')
    return [(key, groups[key]) for key in letters]
