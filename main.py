# -*- coding: utf-8 -*-
"""
Logo & Specs Atlas - HTTP service

Serves the logo catalog, the difficulty tiers, the brand/model/generation
specs index and stateless quiz question sets. The specs index and the logo
catalog are built once per process and cached by the application.
"""
import logging
import mimetypes
import os
import socket
import threading
from contextlib import asynccontextmanager
from typing import Dict, List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, RedirectResponse
from pydantic import BaseModel

import config
from logo_tiers import LOGO_TIERS, get_tier_meta, group_logos_by_tier, is_known_tier, tier_ids
from logos import (
    SORT_ORDERS, Logo, LogoCatalog, build_asset_url, filter_logos,
    group_logos_by_letter, load_logos, sort_logos,
)
from quiz import QuizQuestion, build_logo_quiz, build_model_quiz
from record_source import ImageLibrary, load_records
from specs_index import SpecsIndex, SpecsIndexCache, build_index, image_src
from specs_models import SpecsBrand, SpecsModel

logger = logging.getLogger(__name__)

VERSION = '1.0.0'


# ============================================================================
# DATA LOADING
# ============================================================================

def load_specs_index() -> SpecsIndex:
    """Build the specs index from the configured record source and image root."""
    records = load_records()
    return build_index(records, ImageLibrary(config.SPECS_IMAGE_ROOT))


def warm_caches(app: FastAPI):
    """Build the caches ahead of the first request."""
    try:
        app.state.logos.get()
        app.state.specs.get()
    except Exception:
        logger.exception("Cache warm-up failed; data will be loaded on first request")


# ============================================================================
# RESPONSE MODELS
# ============================================================================

class LogoView(BaseModel):
    name: str
    slug: str
    is_local: bool
    thumb: str
    optimized: str
    original: str


class LogoGroup(BaseModel):
    key: str
    logos: List[LogoView]


class LogoListResult(BaseModel):
    total: int
    count: int
    logos: List[LogoView] = []
    groups: List[LogoGroup] = []


class TierView(BaseModel):
    id: str
    level: int
    label: str
    description: str
    hint: str
    difficulty: str
    count: int


class GenerationView(BaseModel):
    id: str
    name: str
    years: str
    image_src: Optional[str] = None


class ModelSummary(BaseModel):
    id: str
    key: str
    name: str
    years: str
    source: str
    generation_count: int
    image_src: Optional[str] = None


class ModelDetail(ModelSummary):
    brand: str
    brand_key: str
    generations: List[GenerationView] = []


class BrandSummary(BaseModel):
    key: str
    name: str
    model_count: int


class BrandDetail(BrandSummary):
    models: List[ModelSummary] = []


class QuizResult(BaseModel):
    id: str
    title: str
    count: int
    questions: List[QuizQuestion]


def logo_view(logo: Logo) -> LogoView:
    return LogoView(
        name=logo.name,
        slug=logo.slug,
        is_local=logo.is_local,
        thumb=build_asset_url(logo.images.thumb),
        optimized=build_asset_url(logo.images.optimized),
        original=build_asset_url(logo.images.original),
    )


def model_summary(model: SpecsModel) -> ModelSummary:
    return ModelSummary(
        id=model.id,
        key=model.key,
        name=model.name,
        years=model.years,
        source=model.source,
        generation_count=len(model.generations),
        image_src=image_src(model.representative_image),
    )


def brand_summary(brand: SpecsBrand) -> BrandSummary:
    return BrandSummary(key=brand.key, name=brand.name, model_count=len(brand.models))


# ============================================================================
# FASTAPI APPLICATION
# ============================================================================

IMAGE_CACHE_CONTROL = 'public, max-age=31536000, immutable'

IMAGE_MIME_TYPES = {
    '.png': 'image/png',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.webp': 'image/webp',
}

LOGO_ALLOWED_PREFIXES = (
    'logos/thumb/',
    'logos/optimized/',
    'logos/original/',
    'local-logos/',
)


def is_safe_relative_path(path: str) -> bool:
    return bool(path) and '..' not in path and not path.startswith('/')


def create_app(
    specs_cache: Optional[SpecsIndexCache] = None,
    logo_catalog: Optional[LogoCatalog] = None,
    image_root: Optional[str] = None,
    warm_up: bool = True,
) -> FastAPI:
    """
    Application factory; the caches are owned by the returned app.

    Args:
        specs_cache: specs index cache (default: built from config)
        logo_catalog: logo catalog (default: loaded from config)
        image_root: directory served under /api/ultimatespecs
        warm_up: build the caches in a background thread at startup
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if warm_up:
            thread = threading.Thread(target=warm_caches, args=(app,), daemon=True)
            thread.start()
        yield

    app = FastAPI(
        title="Logo & Specs Atlas",
        description="Car logo tiers, quizzes and model/generation galleries",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.specs = specs_cache or SpecsIndexCache(load_specs_index)
    app.state.logos = logo_catalog or LogoCatalog(load_logos)
    app.state.image_root = image_root or config.SPECS_IMAGE_ROOT

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def specs(request: Request) -> SpecsIndex:
        return request.app.state.specs.get()

    def logos(request: Request) -> List[Logo]:
        return request.app.state.logos.get()

    def tiered_logos(request: Request) -> Dict[str, List[Logo]]:
        return group_logos_by_tier(logos(request), config.TIER_COUNT)

    def require_tier(tier_id: str):
        if not is_known_tier(tier_id, config.TIER_COUNT):
            raise HTTPException(status_code=404, detail=f"Unknown tier: {tier_id}")

    def require_brand(request: Request, brand_key: str) -> SpecsBrand:
        brand = specs(request).get_brand(brand_key)
        if brand is None:
            raise HTTPException(status_code=404, detail=f"Unknown brand: {brand_key}")
        return brand

    # ------------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------------

    @app.get("/api/stats")
    async def stats(request: Request):
        """Get application status."""
        cache: SpecsIndexCache = request.app.state.specs
        index = cache.get()
        return {
            "status": "ready",
            "version": VERSION,
            "logo_count": len(logos(request)),
            "brand_count": len(index.brands),
            "brands_with_models": len(index.brands_with_models()),
            "build": index.stats,
            "build_count": cache.build_count,
        }

    # ------------------------------------------------------------------------
    # Logos & tiers
    # ------------------------------------------------------------------------

    @app.get("/api/logos", response_model=LogoListResult)
    async def list_logos(
        request: Request,
        q: str = Query(default="", description="Search on name or slug"),
        sort: str = Query(default="name-asc", description="name-asc or name-desc"),
        group: bool = Query(default=False, description="Group by first letter"),
    ):
        """Search, sort and optionally group the logo catalog."""
        if sort not in SORT_ORDERS:
            raise HTTPException(status_code=400, detail=f"Unknown sort: {sort}. Available: {list(SORT_ORDERS)}")
        all_logos = logos(request)
        found = sort_logos(filter_logos(all_logos, q), sort)
        result = LogoListResult(total=len(all_logos), count=len(found))
        if group:
            result.groups = [
                LogoGroup(key=key, logos=[logo_view(logo) for logo in items])
                for key, items in group_logos_by_letter(found, sort)
            ]
        else:
            result.logos = [logo_view(logo) for logo in found]
        return result

    @app.get("/api/tiers", response_model=List[TierView])
    async def list_tiers(request: Request):
        grouped = tiered_logos(request)
        views = []
        for level, tier_id in enumerate(tier_ids(config.TIER_COUNT), start=1):
            meta = get_tier_meta(tier_id) if level <= len(LOGO_TIERS) else None
            views.append(TierView(
                id=tier_id,
                level=level,
                label=meta.label if meta else tier_id,
                description=meta.description if meta else '',
                hint=meta.hint if meta else '',
                difficulty=meta.difficulty if meta else '',
                count=len(grouped[tier_id]),
            ))
        return views

    @app.get("/api/tiers/{tier_id}", response_model=List[LogoView])
    async def get_tier(request: Request, tier_id: str):
        require_tier(tier_id)
        return [logo_view(logo) for logo in tiered_logos(request)[tier_id]]

    # ------------------------------------------------------------------------
    # Specs index
    # ------------------------------------------------------------------------

    @app.get("/api/brands", response_model=List[BrandSummary])
    async def list_brands(
        request: Request,
        with_models: bool = Query(default=True, description="Only brands that have models"),
    ):
        index = specs(request)
        brands = index.brands_with_models() if with_models else index.list_brands()
        return [brand_summary(brand) for brand in brands]

    @app.get("/api/brands/{brand_key}", response_model=BrandDetail)
    async def get_brand(request: Request, brand_key: str):
        brand = require_brand(request, brand_key)
        return BrandDetail(
            key=brand.key,
            name=brand.name,
            model_count=len(brand.models),
            models=[model_summary(model) for model in brand.models],
        )

    @app.get("/api/brands/{brand_key}/models/{model_key}", response_model=ModelDetail)
    async def get_model(request: Request, brand_key: str, model_key: str):
        brand = require_brand(request, brand_key)
        model = specs(request).get_model(brand.key, model_key)
        if model is None:
            raise HTTPException(status_code=404, detail=f"Unknown model: {model_key}")
        summary = model_summary(model)
        return ModelDetail(
            **summary.model_dump(),
            brand=model.brand,
            brand_key=model.brand_key,
            generations=[
                GenerationView(id=gen.id, name=gen.name, years=gen.years, image_src=image_src(gen.image))
                for gen in model.generations
            ],
        )

    # ------------------------------------------------------------------------
    # Quizzes
    # ------------------------------------------------------------------------

    @app.get("/api/quiz/tiers/{tier_id}", response_model=QuizResult)
    async def tier_quiz(request: Request, tier_id: str):
        require_tier(tier_id)
        tier_logos = tiered_logos(request)[tier_id]
        questions = build_logo_quiz(tier_logos, image_for=lambda logo: build_asset_url(logo.images.optimized))
        meta = get_tier_meta(tier_id)
        return QuizResult(id=tier_id, title=meta.label, count=len(questions), questions=questions)

    @app.get("/api/quiz/models/{brand_key}", response_model=QuizResult)
    async def model_quiz(request: Request, brand_key: str):
        brand = require_brand(request, brand_key)
        questions = build_model_quiz(brand, image_src)
        return QuizResult(id=brand.key, title=brand.name, count=len(questions), questions=questions)

    # ------------------------------------------------------------------------
    # Assets
    # ------------------------------------------------------------------------

    @app.get("/api/ultimatespecs/{path:path}")
    async def specs_image(request: Request, path: str):
        """Serve a specs image from the image root."""
        normalized = path.replace('\\', '/')
        if not is_safe_relative_path(normalized):
            raise HTTPException(status_code=404, detail="Not found")

        root = os.path.realpath(request.app.state.image_root)
        absolute = os.path.realpath(os.path.join(root, normalized))
        if os.path.commonpath([root, absolute]) != root or not os.path.isfile(absolute):
            raise HTTPException(status_code=404, detail="Not found")

        ext = os.path.splitext(absolute)[1].lower()
        media_type = IMAGE_MIME_TYPES.get(ext) or mimetypes.guess_type(absolute)[0] or 'application/octet-stream'
        return FileResponse(absolute, media_type=media_type, headers={"Cache-Control": IMAGE_CACHE_CONTROL})

    @app.get("/api/logo/{path:path}")
    async def logo_asset(path: str):
        """Redirect to a logo file inside the public dataset folders."""
        normalized = path.replace('\\', '/')
        if not is_safe_relative_path(normalized) or not normalized.startswith(LOGO_ALLOWED_PREFIXES):
            raise HTTPException(status_code=404, detail="Not found")
        return RedirectResponse(build_asset_url(f'/car-logos-dataset/{normalized}'), status_code=302)

    @app.get("/api/flags/{code}")
    async def flag_asset(code: str, size: Optional[str] = None):
        """Redirect to a country flag (SVG, or PNG when a size is given)."""
        raw = code.strip()
        if not raw:
            raise HTTPException(status_code=404, detail="Not found")
        normalized = raw.upper()
        if size:
            folder = 'PNG-128' if size == '128' else 'PNG-32'
            target = f'/flags/{folder}/{normalized}.png'
        else:
            target = f'/flags/SVG/{normalized}.svg'
        return RedirectResponse(build_asset_url(target), status_code=302)

    return app


app = create_app()


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

def find_available_port(start_port=8000, max_attempts=10):
    """Find an available port starting from start_port."""
    for port in range(start_port, start_port + max_attempts):
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                s.bind((config.HOST, port))
                return port
        except OSError:
            continue
    return None


def main():
    """Run the HTTP service."""
    logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    print("=" * 60)
    print(f"Logo & Specs Atlas v{VERSION}")
    print("=" * 60)

    port = find_available_port(config.PORT)
    if port is None:
        print(f"\nERROR: Could not find an available port ({config.PORT}-{config.PORT + 9}).")
        return

    print(f"\nStarting server at http://{config.HOST}:{port}")
    print("Press Ctrl+C to stop\n")

    uvicorn.run(app, host=config.HOST, port=port, log_level="warning")


if __name__ == "__main__":
    main()
