# -*- coding: utf-8 -*-
"""
Normalizers

Centralized normalization functions for brand, model and generation names.
Every key comparison in the specs index goes through normalize_key() so that
brand keys, model keys and token comparisons agree with each other.
"""

import re
import unicodedata
from typing import Optional, Set, Tuple
from urllib.parse import urlparse


# =============================================================================
# KEY NORMALIZATION
# =============================================================================

_NON_ALNUM_RE = re.compile(r'[^a-z0-9]+')


def normalize_key(value: Optional[str]) -> str:
    """
    Normalize a display name into a lowercase-dash slug.

    Decomposes unicode, strips diacritics, lowercases, collapses any run of
    non-alphanumeric characters into a single dash and trims dashes.

    Args:
        value: Raw display string

    Returns:
        Slug such as "alfa-romeo", or empty string if nothing survives
    """
    if not value:
        return ''

    decomposed = unicodedata.normalize('NFKD', value)
    stripped = ''.join(ch for ch in decomposed if not unicodedata.combining(ch))
    slug = _NON_ALNUM_RE.sub('-', stripped.lower())
    return slug.strip('-')


def compact_key(value: Optional[str]) -> str:
    """Normalized key without dashes ("land-rover" -> "landrover")."""
    return normalize_key(value).replace('-', '')


def tokenize(value: Optional[str]) -> Set[str]:
    """Split a value into its set of normalized tokens."""
    return {token for token in normalize_key(value).split('-') if token}


def contains_phrase(haystack_key: str, needle_key: str) -> bool:
    """
    True if needle_key appears in haystack_key on token boundaries.

    Both arguments must already be normalized keys. "z3" is found in
    "bmw-z3-coupe" but not in "bmw-z30".
    """
    if not haystack_key or not needle_key:
        return False
    return f'-{needle_key}-' in f'-{haystack_key}-'


# =============================================================================
# NAME CLEANING
# =============================================================================

_GENERATIONS_SUFFIX_RE = re.compile(r'\s+Generations$', re.IGNORECASE)
_YEAR_ONWARD_RE = re.compile(r'\b\d{4}.*$')
_URL_DATE_SUFFIX_RE = re.compile(r'[-_]\d{4}.*$')
_HTML_EXT_RE = re.compile(r'\.html?$', re.IGNORECASE)


def strip_brand_prefix(name: str, brand: str) -> str:
    """Remove a leading repeat of the brand name ("BMW Z3" -> "Z3")."""
    cleaned = (name or '').strip()
    brand_lower = (brand or '').strip().lower()
    if brand_lower and cleaned.lower().startswith(brand_lower):
        cleaned = cleaned[len(brand_lower):].strip()
    return cleaned


def clean_model_name(name: str, brand: str) -> str:
    """
    Clean a Model record name for display and keying.

    "Toyota GT86 Generations" -> "GT86"
    """
    cleaned = _GENERATIONS_SUFFIX_RE.sub('', (name or '').strip()).strip()
    return strip_brand_prefix(cleaned, brand)


def generation_base_name(name: str, brand: str) -> str:
    """
    Generation name without the brand prefix and without the year onwards.

    "BMW 3 Series E46 1998-2006" -> "3 Series E46". Falls back to the raw name
    when nothing is left.
    """
    cleaned = _YEAR_ONWARD_RE.sub('', strip_brand_prefix(name, brand)).strip()
    return cleaned or (name or '')


def generation_base_key(name: str, brand: str) -> str:
    """Normalized generation_base_name(), used as the fallback model key."""
    return normalize_key(generation_base_name(name, brand))


def url_slug(url: Optional[str]) -> str:
    """
    Final path segment of a specs URL with extension and date suffix removed.

    ".../toyota/gr86-2022.html" -> "gr86"
    """
    if not url:
        return ''
    try:
        path = urlparse(url).path
    except ValueError:
        return ''

    parts = [part for part in path.split('/') if part]
    if not parts:
        return ''

    slug = _HTML_EXT_RE.sub('', parts[-1])
    return _URL_DATE_SUFFIX_RE.sub('', slug)


# =============================================================================
# TOYOTA GT86 / GR86 SPECIAL CASE
# =============================================================================

GT86_GR86_KEY = 'gt86-gr86'


def apply_model_key_overrides(brand: str, key: str) -> str:
    """Merge Toyota GT86 and GR86 naming into a single model key."""
    if (brand or '').strip().lower() == 'toyota' and ('gt86' in key or 'gr86' in key):
        return GT86_GR86_KEY
    return key


def model_key_from_model_name(name: str, brand: str) -> str:
    """Model key for a category=Model record."""
    cleaned = clean_model_name(name, brand)
    base = normalize_key(cleaned or name)
    return apply_model_key_overrides(brand, base)


def model_key_from_generation(name: str, brand: str, url: Optional[str]) -> str:
    """
    Model key for a category=Generation record.

    Prefers the URL slug; without one, uses the brand-stripped, year-stripped
    record name.
    """
    slug = url_slug(url)
    if not slug:
        slug = _YEAR_ONWARD_RE.sub('', strip_brand_prefix(name, brand)).strip()
    base = normalize_key(slug or name)
    return apply_model_key_overrides(brand, base)


# =============================================================================
# YEAR RANGES
# =============================================================================

_YEAR_RE = re.compile(r'\d{4}')
_PRESENT_RE = re.compile(r'present', re.IGNORECASE)

PRESENT_YEAR = 9999


def parse_years(value: Optional[str]) -> Tuple[Optional[int], Optional[int]]:
    """
    Parse a free-text year range.

    Uses the first two 4-digit numbers; "present" maps the end year to 9999
    and a missing end year falls back to the start year.

    Returns:
        (start, end), either of which may be None
    """
    if not value:
        return None, None

    numbers = _YEAR_RE.findall(value)
    start = int(numbers[0]) if numbers else None
    end = int(numbers[1]) if len(numbers) > 1 else start
    if _PRESENT_RE.search(value):
        end = PRESENT_YEAR
    return start, end


# =============================================================================
# IMAGE PATHS
# =============================================================================

IMAGE_ROOT_TOKEN = 'ultimatespecs_images'

_HASH_SUFFIX_RE = re.compile(r'[\s_-]+(?=[0-9a-f]*\d)[0-9a-f]{6,}$', re.IGNORECASE)
_EXTENSION_RE = re.compile(r'\.[A-Za-z0-9]{2,5}$')


def normalize_local_image_path(value: Optional[str]) -> Optional[str]:
    """
    Make a scraped local image path relative to the image root.

    Everything up to and including the "ultimatespecs_images" folder is
    stripped; without that folder only the last two segments are kept.
    """
    if not value:
        return None

    normalized = value.replace('\\', '/')
    token = f'/{IMAGE_ROOT_TOKEN}/'
    index = normalized.lower().find(token)
    if index >= 0:
        return normalized[index + len(token):]

    parts = [part for part in normalized.split('/') if part]
    return '/'.join(parts[-2:]) or None


def humanize_filename(filename: str) -> str:
    """
    Turn an image filename into a display name.

    "Z3_Roadster_1996_3fa9c01b.jpg" -> "Z3 Roadster 1996"
    """
    stem = _EXTENSION_RE.sub('', filename or '')
    previous = None
    while previous != stem:
        previous = stem
        stem = _HASH_SUFFIX_RE.sub('', stem)
    return ' '.join(stem.replace('_', ' ').split())


def years_from_filename(filename: str) -> str:
    """First 4-digit year found in a filename, or empty string."""
    match = _YEAR_RE.search(_EXTENSION_RE.sub('', filename or ''))
    return match.group(0) if match else ''
