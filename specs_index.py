# -*- coding: utf-8 -*-
"""
Specs Index - brand -> model -> generation tree from scraped records

The builder runs five passes over the flat record list:

1. register brands and the models named by category=Model rows
2. attach every category=Generation row through the matcher chain
   (specs_matcher.MATCHERS), deduplicating by normalized name + years
3. alias backfill: recover generations for models listed in
   MODEL_GENERATION_OVERRIDES that the generic chain put elsewhere
4. give models without generations image-only generations taken from the
   brand's image folder
5. attach a local image file to generations that have none

then picks each model's representative image (latest generation with an
image) and sorts the result. Building never raises on bad data: the worst
case is an empty or imperfect index.
"""
import logging
import time
from typing import Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import quote

from normalizers import (
    humanize_filename, model_key_from_model_name, clean_model_name,
    normalize_key, normalize_local_image_path, parse_years, years_from_filename,
)
from record_source import ImageLibrary
from specs_matcher import (
    MATCHERS, Matcher, best_image_for_generation, get_override_patterns,
    matches_any_pattern, override_model_name, rank_image_files, resolve_model,
)
from specs_models import RawRecord, SpecsBrand, SpecsGeneration, SpecsImage, SpecsModel

logger = logging.getLogger(__name__)

IMAGE_ROUTE_PREFIX = '/api/ultimatespecs/'

# Characters left as-is when quoting a local image path into a URL
_URI_SAFE = ";,/?:@&=+$-_.!~*'()#"

ADDED = 'added'
REPLACED = 'replaced'
DUPLICATE = 'duplicate'


# =============================================================================
# GENERATION HELPERS
# =============================================================================

def generation_dedup_key(name: str, years: str) -> Tuple[str, str]:
    return normalize_key(name), (years or '').strip()


def generation_id(model: SpecsModel, name: str, years: str) -> str:
    years_key = normalize_key(years)
    base = f'{model.id}:{normalize_key(name)}'
    return f'{base}:{years_key}' if years_key else base


def build_generation(record: RawRecord, model: SpecsModel) -> SpecsGeneration:
    return SpecsGeneration(
        id=generation_id(model, record.name, record.years),
        name=record.name,
        years=record.years,
        image=SpecsImage(
            local=normalize_local_image_path(record.local_image),
            url=record.image_url or None,
        ),
        model_key=model.key,
        brand_key=model.brand_key,
    )


def add_generation(model: SpecsModel, generation: SpecsGeneration) -> str:
    """
    Add a generation unless the model already holds the same name + years.

    An existing entry without an image is replaced by an incoming one that has
    an image; any other duplicate is discarded.

    Returns:
        ADDED, REPLACED or DUPLICATE
    """
    key = generation_dedup_key(generation.name, generation.years)
    for i, existing in enumerate(model.generations):
        if generation_dedup_key(existing.name, existing.years) != key:
            continue
        if not existing.image.has_image() and generation.image.has_image():
            model.generations[i] = generation
            return REPLACED
        return DUPLICATE

    model.generations.append(generation)
    return ADDED


def select_representative_image(generations: Sequence[SpecsGeneration]) -> Optional[SpecsImage]:
    """
    Image of the most recent generation that has one.

    Sorted by parsed end year then start year, both descending; earlier list
    position wins ties.
    """
    candidates = [gen for gen in generations if gen.image.has_image()]
    if not candidates:
        return None

    def recency(gen: SpecsGeneration) -> Tuple[int, int]:
        start, end = parse_years(gen.years)
        return end or 0, start or 0

    latest = sorted(candidates, key=recency, reverse=True)[0]
    return latest.image


def image_src(image: Optional[SpecsImage]) -> Optional[str]:
    """
    URL for a specs image: the local image route when a local file is known,
    else the scraped external URL, else None.
    """
    if image is None:
        return None
    if image.local:
        return IMAGE_ROUTE_PREFIX + quote(image.local, safe=_URI_SAFE)
    if image.url:
        return image.url
    return None


# =============================================================================
# INDEX
# =============================================================================

class SpecsIndex:
    """Read-only query surface over the built brand list."""

    def __init__(self, brands: List[SpecsBrand], stats: Optional[Dict] = None):
        self.brands = brands
        self.brand_by_key: Dict[str, SpecsBrand] = {brand.key: brand for brand in brands}
        self.stats = stats or {}

    def list_brands(self) -> List[SpecsBrand]:
        return list(self.brands)

    def get_brand(self, brand_key: str) -> Optional[SpecsBrand]:
        return self.brand_by_key.get(normalize_key(brand_key))

    def brand_key_for_name(self, brand_name: str) -> Optional[str]:
        key = normalize_key(brand_name)
        if key in self.brand_by_key:
            return key
        return None

    def brands_with_models(self) -> List[SpecsBrand]:
        return [brand for brand in self.brands if brand.models]

    def get_model(self, brand_key: str, model_key: str) -> Optional[SpecsModel]:
        brand = self.get_brand(brand_key)
        if brand is None:
            return None
        key = normalize_key(model_key)
        for model in brand.models:
            if model.key == key:
                return model
        return None


# =============================================================================
# BUILDER
# =============================================================================

class _BuildState:

    def __init__(self):
        self.brand_map: Dict[str, SpecsBrand] = {}
        self.model_map: Dict[str, SpecsModel] = {}
        # record position -> (owning model, generation built from it)
        self.placement: Dict[int, Tuple[SpecsModel, SpecsGeneration]] = {}
        self.stats: Dict = {
            'records': 0,
            'skipped_records': 0,
            'matched': {name: 0 for name, _ in MATCHERS},
            'duplicates': 0,
            'alias_backfilled': 0,
            'image_synthesized': 0,
            'image_backfilled': 0,
        }

    def remove_model(self, model: SpecsModel):
        self.model_map.pop(model.id, None)
        brand = self.brand_map.get(model.brand_key)
        if brand is not None:
            brand.models = [item for item in brand.models if item is not model]


class SpecsIndexBuilder:
    """
    Builds a SpecsIndex from RawRecords.

    Args:
        image_library: brand image folders used by passes 4 and 5; None skips them
        matchers: ordered (name, matcher) chain for pass 2
    """

    def __init__(
        self,
        image_library: Optional[ImageLibrary] = None,
        matchers: Sequence[Tuple[str, Matcher]] = MATCHERS,
    ):
        self.image_library = image_library
        self.matchers = matchers

    def build(self, records: Sequence[RawRecord]) -> SpecsIndex:
        state = _BuildState()
        for name, _ in self.matchers:
            state.stats['matched'].setdefault(name, 0)
        state.stats['records'] = len(records)

        self._register_models(records, state)
        self._attach_generations(records, state)
        self._backfill_aliases(records, state)
        if self.image_library is not None:
            self._synthesize_from_images(state)
            self._backfill_images(state)

        for model in state.model_map.values():
            model.representative_image = select_representative_image(model.generations)

        brands = self._finalize(state)
        state.stats['brands'] = len(brands)
        state.stats['models'] = sum(len(brand.models) for brand in brands)
        state.stats['generations'] = sum(len(model.generations) for brand in brands for model in brand.models)
        logger.info(
            "Specs index built: %d brands, %d models, %d generations from %d records",
            state.stats['brands'], state.stats['models'], state.stats['generations'], len(records),
        )
        return SpecsIndex(brands, stats=state.stats)

    # -------------------------------------------------------------------------
    # Pass 1
    # -------------------------------------------------------------------------

    def _register_models(self, records: Sequence[RawRecord], state: _BuildState):
        for record in records:
            brand_key = normalize_key(record.brand)
            if not brand_key:
                state.stats['skipped_records'] += 1
                continue

            brand = state.brand_map.get(brand_key)
            if brand is None:
                brand = SpecsBrand(name=record.brand.strip(), key=brand_key)
                state.brand_map[brand_key] = brand

            if record.category != 'Model':
                continue

            model_key = model_key_from_model_name(record.name, record.brand)
            model_id = f'{brand_key}:{model_key}'
            if model_id in state.model_map:
                continue

            model = SpecsModel(
                id=model_id,
                name=clean_model_name(record.name, record.brand) or record.name,
                years=record.years,
                brand=brand.name,
                brand_key=brand_key,
                key=model_key,
                source='model',
            )
            state.model_map[model_id] = model
            brand.models.append(model)

    # -------------------------------------------------------------------------
    # Pass 2
    # -------------------------------------------------------------------------

    def _attach_generations(self, records: Sequence[RawRecord], state: _BuildState):
        for position, record in enumerate(records):
            if record.category != 'Generation':
                continue
            brand = state.brand_map.get(normalize_key(record.brand))
            if brand is None:
                continue

            matcher_name, model = resolve_model(record, brand, state.model_map, self.matchers)
            if model is None:
                continue
            state.stats['matched'][matcher_name] += 1
            self._place(position, record, model, state)

    def _place(self, position: int, record: RawRecord, model: SpecsModel, state: _BuildState) -> str:
        generation = build_generation(record, model)
        status = add_generation(model, generation)
        if status == DUPLICATE:
            state.stats['duplicates'] += 1
        else:
            state.placement[position] = (model, generation)
        return status

    # -------------------------------------------------------------------------
    # Pass 3
    # -------------------------------------------------------------------------

    def _backfill_aliases(self, records: Sequence[RawRecord], state: _BuildState):
        for brand_key, brand in list(state.brand_map.items()):
            overrides = get_override_patterns(brand_key)
            if not overrides:
                continue

            brand_records = [
                (position, record) for position, record in enumerate(records)
                if record.category == 'Generation' and normalize_key(record.brand) == brand_key
            ]

            for model_key, patterns in overrides.items():
                matching = [
                    (position, record) for position, record in brand_records
                    if matches_any_pattern(record.name, patterns)
                ]
                if not matching:
                    continue

                target = self._get_or_create_override_model(brand, model_key, matching[0][1], state)
                for position, record in matching:
                    placed = state.placement.get(position)
                    if placed is not None and placed[0] is target:
                        continue
                    if placed is not None:
                        self._detach(placed, state)
                        del state.placement[position]
                    if self._place(position, record, target, state) != DUPLICATE:
                        state.stats['alias_backfilled'] += 1

    def _get_or_create_override_model(
        self, brand: SpecsBrand, model_key: str, first_record: RawRecord, state: _BuildState
    ) -> SpecsModel:
        model_id = f'{brand.key}:{model_key}'
        model = state.model_map.get(model_id)
        if model is not None:
            return model

        model = SpecsModel(
            id=model_id,
            name=override_model_name(brand.key, model_key),
            years=first_record.years,
            brand=brand.name,
            brand_key=brand.key,
            key=model_key,
            source='generation',
        )
        state.model_map[model_id] = model
        brand.models.append(model)
        return model

    def _detach(self, placed: Tuple[SpecsModel, SpecsGeneration], state: _BuildState):
        """Remove a generation from its previous owner; drop synthesized owners left empty."""
        owner, generation = placed
        owner.generations = [gen for gen in owner.generations if gen is not generation]
        if owner.source == 'generation' and not owner.generations:
            state.remove_model(owner)

    # -------------------------------------------------------------------------
    # Pass 4
    # -------------------------------------------------------------------------

    def _synthesize_from_images(self, state: _BuildState):
        for brand in state.brand_map.values():
            empty_models = [model for model in brand.models if not model.generations]
            if not empty_models:
                continue
            folder, filenames = self.image_library.files_for_brand(brand.name)
            if not filenames:
                continue

            for model in empty_models:
                for filename, _score in rank_image_files(model, filenames, brand.name):
                    name = humanize_filename(filename)
                    years = years_from_filename(filename)
                    generation = SpecsGeneration(
                        id=generation_id(model, name, years),
                        name=name,
                        years=years,
                        image=SpecsImage(local=f'{folder}/{filename}'),
                        model_key=model.key,
                        brand_key=model.brand_key,
                    )
                    if add_generation(model, generation) != DUPLICATE:
                        state.stats['image_synthesized'] += 1

    # -------------------------------------------------------------------------
    # Pass 5
    # -------------------------------------------------------------------------

    def _backfill_images(self, state: _BuildState):
        for brand in state.brand_map.values():
            if not any(not gen.image.local for model in brand.models for gen in model.generations):
                continue
            folder, filenames = self.image_library.files_for_brand(brand.name)
            if not filenames:
                continue

            for model in brand.models:
                for i, generation in enumerate(model.generations):
                    if generation.image.local:
                        continue
                    filename = best_image_for_generation(
                        model, generation.name, generation.years, filenames, brand.name
                    )
                    if filename is None:
                        continue
                    model.generations[i] = generation.model_copy(update={
                        'image': SpecsImage(local=f'{folder}/{filename}', url=generation.image.url),
                    })
                    state.stats['image_backfilled'] += 1

    # -------------------------------------------------------------------------
    # Finalization
    # -------------------------------------------------------------------------

    def _finalize(self, state: _BuildState) -> List[SpecsBrand]:
        brands = []
        for brand in state.brand_map.values():
            brand.models = sorted(
                (model for model in brand.models if model.key),
                key=lambda model: (model.name.casefold(), model.name),
            )
            brands.append(brand)
        brands.sort(key=lambda brand: (brand.name.casefold(), brand.name))
        return brands


def build_index(records: Sequence[RawRecord], image_library: Optional[ImageLibrary] = None) -> SpecsIndex:
    """Build a SpecsIndex; see SpecsIndexBuilder."""
    return SpecsIndexBuilder(image_library=image_library).build(records)


# =============================================================================
# PROCESS-WIDE CACHE
# =============================================================================

class SpecsIndexCache:
    """
    Lazily built, explicitly invalidated holder of the SpecsIndex.

    Owned by the application. Unlocked: concurrent first calls may each build
    an index, and the results are equal.
    """

    def __init__(self, loader: Callable[[], SpecsIndex]):
        self._loader = loader
        self._index: Optional[SpecsIndex] = None
        self.built_at: Optional[float] = None
        self.build_count = 0

    @property
    def is_built(self) -> bool:
        return self._index is not None

    def get(self) -> SpecsIndex:
        index = self._index
        if index is None:
            index = self._loader()
            self._index = index
            self.built_at = time.time()
            self.build_count += 1
        return index

    def invalidate(self):
        self._index = None

    def refresh(self) -> SpecsIndex:
        self.invalidate()
        return self.get()
