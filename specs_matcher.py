# -*- coding: utf-8 -*-
"""
Specs Matcher - generation to model reconciliation

Scraped generation rows do not reference their model explicitly, so each one
is attached through an ordered chain of matchers, from strict to fuzzy:

    exact key  ->  substring key  ->  token score (>= 40)  ->  synthesize

Every matcher takes (record, brand, model_map) and returns the target model or
None. The last one always succeeds by registering a new model bucket, so no
generation is ever dropped.

The same token heuristics are reused to pick image files from a brand's
image folder for models and generations that have no image of their own.
"""

from types import MappingProxyType
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from normalizers import (
    contains_phrase, generation_base_key, generation_base_name,
    model_key_from_generation, normalize_key, parse_years, tokenize, url_slug,
)
from specs_models import RawRecord, SpecsBrand, SpecsModel


# =============================================================================
# SCORING WEIGHTS
# =============================================================================

GENERATION_WEIGHTS = MappingProxyType({
    'slug_key': 100,         # model key == generation slug key
    'name_key': 90,          # model key == normalized generation base name
    'token': 10,             # per shared token
    'numeric': 20,           # any shared all-digit token
    'subset': 30,            # one token set is a subset of the other
    'key_containment': 15,   # model key / slug key substring either way
    'name_containment': 10,  # model name / generation name substring either way
    'alias': 35,             # curated alias found in the generation name
})

IMAGE_WEIGHTS = MappingProxyType({
    'token': 10,
    'numeric': 20,
    'subset': 30,
    'key_phrase': 15,
    'generation_token': 10,
    'generation_year': 15,
})

TOKEN_SCORE_THRESHOLD = 40
MAX_SYNTHESIZED_IMAGES = 12


# =============================================================================
# ALIAS TABLES
# =============================================================================

def _freeze(table: Dict[str, Dict[str, Tuple[str, ...]]]) -> Mapping[str, Mapping[str, Tuple[str, ...]]]:
    return MappingProxyType({brand: MappingProxyType(models) for brand, models in table.items()})


# Known naming quirks: generations listed under chassis codes rather than the
# model name. brand key -> model key -> aliases (normalized keys).
MODEL_ALIAS_MAP = _freeze({
    'bmw': {
        'z3': ('z3', 'e36-7', 'e36-8'),
        'z4': ('z4', 'e85', 'e86', 'e89', 'g29'),
        '3-series': ('e21', 'e30', 'e36', 'e46', 'e90', 'e91', 'e92', 'e93', 'f30', 'f31', 'g20', 'g21'),
        '5-series': ('e12', 'e28', 'e34', 'e39', 'e60', 'e61', 'f10', 'f11', 'g30', 'g31', 'g60'),
        'x5': ('e53', 'e70', 'f15', 'g05'),
    },
    'mercedes-benz': {
        'c-class': ('w202', 'w203', 'w204', 'w205', 'w206'),
        'e-class': ('w124', 'w210', 'w211', 'w212', 'w213', 'w214'),
        's-class': ('w126', 'w140', 'w220', 'w221', 'w222', 'w223'),
        'g-class': ('g-wagen', 'w460', 'w461', 'w463'),
    },
    'porsche': {
        '911': ('930', '964', '993', '996', '997', '991', '992'),
    },
    'toyota': {
        'gt86-gr86': ('gt86', 'gr86', 'ft86'),
    },
    'volkswagen': {
        'beetle': ('new-beetle', 'kafer', 'type-1'),
    },
})

# Models whose generations are recovered by scanning every generation row of
# the brand after the generic matching passes.
MODEL_GENERATION_OVERRIDES = _freeze({
    'bmw': {
        'z3': ('z3', 'e36-7', 'e36-8'),
        'z4': ('z4', 'e85', 'e86', 'e89', 'g29'),
    },
    'mercedes-benz': {
        'g-class': ('g-class', 'g-wagen', 'w463'),
    },
    'toyota': {
        'gt86-gr86': ('gt86', 'gr86'),
    },
})

OVERRIDE_MODEL_NAMES = MappingProxyType({
    ('bmw', 'z3'): 'Z3',
    ('bmw', 'z4'): 'Z4',
    ('mercedes-benz', 'g-class'): 'G-Class',
    ('toyota', 'gt86-gr86'): 'GT86 / GR86',
})


def get_model_aliases(brand_key: str, model_key: str) -> Tuple[str, ...]:
    return MODEL_ALIAS_MAP.get(brand_key, {}).get(model_key, ())


def get_override_patterns(brand_key: str) -> Mapping[str, Tuple[str, ...]]:
    return MODEL_GENERATION_OVERRIDES.get(brand_key, MappingProxyType({}))


def override_model_name(brand_key: str, model_key: str) -> str:
    """Display name for a model created from the override table."""
    name = OVERRIDE_MODEL_NAMES.get((brand_key, model_key))
    if name:
        return name
    return model_key.replace('-', ' ').title()


def matches_any_pattern(generation_name: str, patterns: Iterable[str]) -> bool:
    """True if any pattern appears on token boundaries in the normalized name."""
    name_key = normalize_key(generation_name)
    return any(contains_phrase(name_key, normalize_key(pattern)) for pattern in patterns)


# =============================================================================
# GENERATION SCORING
# =============================================================================

def _shares_numeric(left: set, right: set) -> bool:
    return any(token.isdigit() for token in left & right)


def _is_subset_either_way(left: set, right: set) -> bool:
    if not left or not right:
        return False
    return left <= right or right <= left


def score_model_for_generation(model: SpecsModel, record: RawRecord) -> int:
    """
    Score how well a generation record fits an existing model.

    Purely additive, no early exit. Breakdown in GENERATION_WEIGHTS.
    """
    w = GENERATION_WEIGHTS
    score = 0

    slug_key = normalize_key(url_slug(record.url))
    base_key = generation_base_key(record.name, record.brand)

    if model.key and model.key == slug_key:
        score += w['slug_key']
    if model.key and model.key == base_key:
        score += w['name_key']

    generation_tokens = tokenize(record.name) | tokenize(slug_key)
    model_tokens = tokenize(model.name) | tokenize(model.key)

    shared = generation_tokens & model_tokens
    score += w['token'] * len(shared)
    if _shares_numeric(generation_tokens, model_tokens):
        score += w['numeric']
    if _is_subset_either_way(generation_tokens, model_tokens):
        score += w['subset']

    if model.key and slug_key and (model.key in slug_key or slug_key in model.key):
        score += w['key_containment']

    model_name = model.name.strip().lower()
    generation_name = record.name.strip().lower()
    if model_name and generation_name and (model_name in generation_name or generation_name in model_name):
        score += w['name_containment']

    aliases = get_model_aliases(model.brand_key, model.key)
    if aliases and matches_any_pattern(record.name, aliases):
        score += w['alias']

    return score


# =============================================================================
# MATCHER CHAIN
# =============================================================================

Matcher = Callable[[RawRecord, SpecsBrand, Dict[str, SpecsModel]], Optional[SpecsModel]]


def match_exact_key(record: RawRecord, brand: SpecsBrand, model_map: Dict[str, SpecsModel]) -> Optional[SpecsModel]:
    """Look up brand:model key derived from the URL slug (or the name)."""
    model_key = model_key_from_generation(record.name, record.brand, record.url)
    return model_map.get(f'{brand.key}:{model_key}')


def match_substring_key(record: RawRecord, brand: SpecsBrand, model_map: Dict[str, SpecsModel]) -> Optional[SpecsModel]:
    """Brand model whose key is contained in the fallback key; longest key wins."""
    fallback_key = generation_base_key(record.name, record.brand)
    candidates = [model for model in brand.models if model.key and model.key in fallback_key]
    if not candidates:
        return None
    return max(candidates, key=lambda model: len(model.key))


def match_token_score(record: RawRecord, brand: SpecsBrand, model_map: Dict[str, SpecsModel]) -> Optional[SpecsModel]:
    """Highest scoring brand model, if it reaches TOKEN_SCORE_THRESHOLD."""
    best_model = None
    best_score = -1
    for model in brand.models:
        score = score_model_for_generation(model, record)
        if score > best_score:
            best_model, best_score = model, score
    if best_model is not None and best_score >= TOKEN_SCORE_THRESHOLD:
        return best_model
    return None


def synthesize_model(record: RawRecord, brand: SpecsBrand, model_map: Dict[str, SpecsModel]) -> Optional[SpecsModel]:
    """Register a model bucket named after the orphaned generation."""
    fallback_name = generation_base_name(record.name, record.brand)
    model_key = normalize_key(fallback_name)
    model_id = f'{brand.key}:{model_key}'

    existing = model_map.get(model_id)
    if existing is not None:
        return existing

    model = SpecsModel(
        id=model_id,
        name=fallback_name,
        years=record.years,
        brand=brand.name,
        brand_key=brand.key,
        key=model_key,
        source='generation',
    )
    model_map[model_id] = model
    brand.models.append(model)
    return model


MATCHERS: Sequence[Tuple[str, Matcher]] = (
    ('exact', match_exact_key),
    ('substring', match_substring_key),
    ('token_score', match_token_score),
    ('synthesized', synthesize_model),
)


def resolve_model(
    record: RawRecord,
    brand: SpecsBrand,
    model_map: Dict[str, SpecsModel],
    matchers: Sequence[Tuple[str, Matcher]] = MATCHERS,
) -> Tuple[Optional[str], Optional[SpecsModel]]:
    """
    Run the matcher chain; first success wins.

    Returns:
        (matcher name, model), or (None, None) if every matcher declined
    """
    for name, matcher in matchers:
        model = matcher(record, brand, model_map)
        if model is not None:
            return name, model
    return None, None


# =============================================================================
# IMAGE FILE SCORING
# =============================================================================

def score_image_for_model(model: SpecsModel, filename: str, brand_name: str = '') -> int:
    """
    Score an image filename against a model.

    A file must share at least one token with the model name, otherwise it
    scores 0. Brand tokens in the filename are ignored.
    """
    w = IMAGE_WEIGHTS
    file_key = normalize_key(filename.rsplit('.', 1)[0])
    file_tokens = tokenize(file_key) - tokenize(brand_name)
    name_tokens = tokenize(model.name)

    if not file_tokens & name_tokens:
        return 0

    model_tokens = name_tokens | tokenize(model.key)
    score = w['token'] * len(file_tokens & model_tokens)
    if _shares_numeric(file_tokens, model_tokens):
        score += w['numeric']
    if _is_subset_either_way(file_tokens, model_tokens):
        score += w['subset']
    if contains_phrase(file_key, model.key):
        score += w['key_phrase']
    return score


def score_image_for_generation(
    model: SpecsModel,
    generation_name: str,
    generation_years: str,
    filename: str,
    brand_name: str = '',
) -> int:
    """Model score for the file, refined by the generation's own name and start year."""
    score = score_image_for_model(model, filename, brand_name)
    if score <= 0:
        return 0

    w = IMAGE_WEIGHTS
    file_tokens = tokenize(filename.rsplit('.', 1)[0])
    model_tokens = tokenize(model.name) | tokenize(model.key)
    extra_tokens = (tokenize(generation_name) - model_tokens - tokenize(brand_name)) & file_tokens
    score += w['generation_token'] * len(extra_tokens)

    start, _ = parse_years(generation_years)
    if start is not None and str(start) in file_tokens:
        score += w['generation_year']
    return score


def rank_image_files(
    model: SpecsModel,
    filenames: Iterable[str],
    brand_name: str = '',
    limit: int = MAX_SYNTHESIZED_IMAGES,
) -> List[Tuple[str, int]]:
    """Positively scored files for a model, best first, ties by filename."""
    scored = []
    for filename in filenames:
        score = score_image_for_model(model, filename, brand_name)
        if score > 0:
            scored.append((filename, score))
    scored.sort(key=lambda item: (-item[1], item[0]))
    return scored[:limit]


def best_image_for_generation(
    model: SpecsModel,
    generation_name: str,
    generation_years: str,
    filenames: Iterable[str],
    brand_name: str = '',
) -> Optional[str]:
    """Best positively scored file for a generation, or None."""
    best_file = None
    best_score = 0
    for filename in sorted(filenames):
        score = score_image_for_generation(model, generation_name, generation_years, filename, brand_name)
        if score > best_score:
            best_file, best_score = filename, score
    return best_file
