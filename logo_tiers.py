# -*- coding: utf-8 -*-
"""
Logo Tiers - difficulty levels for the logo recognition quizzes

Logos are ranked by a brand-recognition heuristic (popularity_score) built
from curated slug sets. Two tiering functions use that score:

- group_logos_by_tier(): percentile buckets of the whole population, equal
  counts per tier (drives the tier galleries and quizzes)
- get_logo_tier_id(): absolute score normalized between fixed bounds
  (classifies a single logo)

The two can put the same logo in different tiers; callers use each one
independently.
"""
import math
import re
from typing import Dict, List, Sequence

from pydantic import BaseModel

from logos import Logo


# =============================================================================
# TIER METADATA
# =============================================================================

class LogoTier(BaseModel):
    id: str
    level: int
    label: str
    description: str
    hint: str
    difficulty: str


LOGO_TIERS: List[LogoTier] = [
    LogoTier(id='nivel-1', level=1, label='Fundamentos globales',
             description='Las marcas más famosas y masivas del mundo.',
             hint='Aprendizaje ultra rápido.', difficulty='Muy fácil'),
    LogoTier(id='nivel-2', level=2, label='Marcas globales',
             description='Fabricantes con alta presencia internacional.',
             hint='Consolida reconocimiento general.', difficulty='Fácil'),
    LogoTier(id='nivel-3', level=3, label='Populares regionales',
             description='Muy vistas en mercados específicos.',
             hint='Amplía el mapa cultural.', difficulty='Media-baja'),
    LogoTier(id='nivel-4', level=4, label='Premium y lujo',
             description='Lujo, deportivos y marcas aspiracionales.',
             hint='Refina detalles visuales.', difficulty='Media'),
    LogoTier(id='nivel-5', level=5, label='Performance y nicho',
             description='Series limitadas y marcas de performance.',
             hint='Ideal para entusiastas.', difficulty='Media-alta'),
    LogoTier(id='nivel-6', level=6, label='Comerciales e industriales',
             description='Camiones, buses y transporte pesado.',
             hint='Diferencia flotas y transporte.', difficulty='Difícil'),
    LogoTier(id='nivel-7', level=7, label='Históricas y locales',
             description='Marcas antiguas o de nicho regional.',
             hint='Requiere investigación adicional.', difficulty='Muy difícil'),
    LogoTier(id='nivel-8', level=8, label='Raras y extintas',
             description='Marcas poco documentadas o ya extintas.',
             hint='Nivel experto.', difficulty='Experta'),
]

DEFAULT_TIER_COUNT = len(LOGO_TIERS)


def tier_id_for_level(level: int) -> str:
    """Tier id for a 1-based level ("nivel-3")."""
    return f'nivel-{level}'


def tier_ids(tier_count: int = DEFAULT_TIER_COUNT) -> List[str]:
    return [tier_id_for_level(level) for level in range(1, max(tier_count, 1) + 1)]


def get_tier_meta(tier_id: str) -> LogoTier:
    """Metadata for a tier id, falling back to the first tier."""
    for tier in LOGO_TIERS:
        if tier.id == tier_id:
            return tier
    return LOGO_TIERS[0]


def is_known_tier(tier_id: str, tier_count: int = DEFAULT_TIER_COUNT) -> bool:
    return tier_id in tier_ids(tier_count)


# =============================================================================
# CURATED BRAND SETS
# =============================================================================

LEGENDARY = frozenset([
    'toyota', 'volkswagen', 'ford', 'chevrolet', 'honda', 'nissan', 'bmw',
    'mercedes-benz', 'audi', 'hyundai', 'kia', 'renault', 'peugeot', 'fiat',
    'jeep', 'tesla', 'volvo', 'subaru', 'mazda', 'lexus', 'porsche', 'mini',
    'land-rover', 'jaguar', 'seat', 'skoda', 'citroen',
])

GLOBAL = frozenset([
    'opel', 'dacia', 'suzuki', 'mitsubishi', 'ram', 'cadillac', 'buick', 'gmc',
    'chrysler', 'dodge', 'lincoln', 'acura', 'infiniti', 'genesis',
    'alfa-romeo', 'saab', 'mg', 'cupra', 'saic-motor', 'chery', 'geely', 'byd',
    'great-wall', 'dongfeng', 'faw', 'changan', 'haval', 'baic-motor', 'jac',
    'jmc', 'tata', 'mahindra', 'proton', 'perodua', 'vinfast', 'wuling',
    'jetour', 'omoda', 'bestune', 'gac-group',
])

PREMIUM = frozenset([
    'ferrari', 'lamborghini', 'bugatti', 'bentley', 'rolls-royce', 'mclaren',
    'aston-martin', 'maserati', 'pagani', 'koenigsegg', 'rimac', 'lotus',
    'polestar', 'lucid', 'rivian', 'hennessey', 'ruf', 'brabus', 'mansory',
    'maybach', 'alpina',
])

REGIONAL = frozenset([
    'gaz', 'uaz', 'lada', 'zastava', 'zaz', 'skoda', 'seat', 'ds', 'daihatsu',
    'isuzu', 'ikco', 'iran-khodro', 'chery', 'geely', 'proton', 'perodua',
    'mahindra', 'tata', 'vinfast', 'wuling', 'soueast', 'saipa', 'roewe',
    'baojun', 'foton', 'maxus', 'changan', 'haval',
])

COMMERCIAL = frozenset([
    'scania', 'man', 'daf', 'iveco', 'mack', 'kenworth', 'peterbilt',
    'freightliner', 'hino', 'ic-bus', 'setra', 'irizar', 'golden-dragon',
    'yutong', 'sinotruk', 'ud', 'kamaz', 'navistar', 'volvo', 'isuzu',
    'faw-jiefang',
])

# (slug set, weight); memberships add up
CATEGORY_WEIGHTS = (
    (LEGENDARY, 120),
    (GLOBAL, 90),
    (PREMIUM, 70),
    (REGIONAL, 50),
    (COMMERCIAL, 55),
)

COMMERCIAL_HINT = re.compile(r'(bus|truck|trucks|coach|transport|motors|motor)', re.IGNORECASE)
COMMERCIAL_HINT_BONUS = 20
SHORT_NAME_BONUS = 15
LOCAL_LOGO_PENALTY = 5

MIN_SCORE = -20
MAX_SCORE = 120


# =============================================================================
# SCORING
# =============================================================================

def is_short_recognizable(name: str) -> bool:
    """At most 9 letters and at most 2 words."""
    letters = re.sub(r'[^a-zA-Z]', '', name)
    words = [word for word in re.split(r'[\s-]+', name.strip()) if word]
    return len(letters) <= 9 and len(words) <= 2


def popularity_score(logo: Logo) -> float:
    """Brand-recognition heuristic; higher means easier to recognize."""
    slug = logo.slug.lower()
    score = 0.0

    for slugs, weight in CATEGORY_WEIGHTS:
        if slug in slugs:
            score += weight

    if COMMERCIAL_HINT.search(slug):
        score += COMMERCIAL_HINT_BONUS
    if is_short_recognizable(logo.name):
        score += SHORT_NAME_BONUS
    if logo.is_local:
        score -= LOCAL_LOGO_PENALTY

    score -= min(len(logo.name) * 0.8, 20)
    return score


# =============================================================================
# TIERING
# =============================================================================

def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def get_logo_tier_id(logo: Logo, total: int = DEFAULT_TIER_COUNT) -> str:
    """
    Tier of a single logo from its absolute score.

    The score is normalized between MIN_SCORE and MAX_SCORE, clamped to [0, 1]
    and inverted so that high scores land in the first (easiest) tier. An
    index past the end of LOGO_TIERS falls back to the last tier.
    """
    total = max(total, 1)
    score = popularity_score(logo)
    normalized = max(0.0, min(1.0, (score - MIN_SCORE) / (MAX_SCORE - MIN_SCORE)))
    index = total - 1 - _round_half_up(normalized * (total - 1))
    if index >= len(LOGO_TIERS):
        return LOGO_TIERS[-1].id
    return LOGO_TIERS[index].id


def group_logos_by_tier(logos: Sequence[Logo], tier_count: int = DEFAULT_TIER_COUNT) -> Dict[str, List[Logo]]:
    """
    Percentile tiers: logos sorted by score (descending, stable) and cut into
    tier_count contiguous buckets of equal count.

    Every tier id is present in the result, possibly with an empty list.
    """
    ids = tier_ids(tier_count)
    grouped: Dict[str, List[Logo]] = {tier_id: [] for tier_id in ids}

    ranked = sorted(logos, key=popularity_score, reverse=True)
    total = len(ranked) or 1
    for i, logo in enumerate(ranked):
        bucket = min(i * len(ids) // total, len(ids) - 1)
        grouped[ids[bucket]].append(logo)
    return grouped
