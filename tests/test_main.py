"""
Tests for the HTTP API.

The app is built with in-memory caches and a temporary image root, so no
dataset files or network access are needed.
"""

import pytest
from fastapi.testclient import TestClient

import config
from logos import Logo, LogoCatalog, LogoImages
from main import create_app, is_safe_relative_path
from specs_index import SpecsIndexCache, build_index
from specs_models import RawRecord


def make_logo(name, slug=None):
    slug = slug or name.lower().replace(' ', '-')
    return Logo(
        name=name,
        slug=slug,
        images=LogoImages(
            thumb=f'/car-logos-dataset/logos/thumb/{slug}.png',
            optimized=f'/car-logos-dataset/logos/optimized/{slug}.png',
            original=f'/car-logos-dataset/logos/original/{slug}.png',
        ),
    )


LOGOS = [make_logo(name) for name in (
    'Toyota', 'BMW', 'Audi', 'Alfa Romeo', 'Kia', 'Lada', 'Zastava', 'Yutong Bus',
    'Ferrari', 'Scania', '9ff', 'Volvo', 'Seat', 'Dacia', 'Lotus', 'Saab',
)]

RECORDS = [
    RawRecord(category='Model', brand='Toyota', name='Toyota GT86 Generations'),
    RawRecord(category='Generation', brand='Toyota', name='Toyota GT86 2012-2020', years='2012-2020',
              url='https://www.ultimatespecs.com/car-specs/Toyota/gt86-2012.html',
              image_url='https://img.example.com/gt86.jpg'),
    RawRecord(category='Generation', brand='Toyota', name='Toyota GR86 2022-present', years='2022-present',
              url='https://www.ultimatespecs.com/car-specs/Toyota/gr86-2022.html',
              local_image='/scrape/ultimatespecs_images/Toyota/gr86.png'),
    RawRecord(category='Model', brand='Toyota', name='Toyota Corolla Generations'),
    RawRecord(category='Model', brand='Kia', name='!!!'),
]


@pytest.fixture
def image_root(tmp_path):
    folder = tmp_path / 'Toyota'
    folder.mkdir()
    (folder / 'gr86.png').write_bytes(b'\x89PNG\r\n')
    (folder / 'gt86 white.jpg').write_bytes(b'\xff\xd8\xff')
    return tmp_path


@pytest.fixture
def client(image_root, monkeypatch):
    monkeypatch.setattr(config, 'ASSET_MODE', 'local')
    monkeypatch.setattr(config, 'TIER_COUNT', 8)
    app = create_app(
        specs_cache=SpecsIndexCache(lambda: build_index(RECORDS)),
        logo_catalog=LogoCatalog(lambda: list(LOGOS)),
        image_root=str(image_root),
        warm_up=False,
    )
    with TestClient(app) as test_client:
        yield test_client


class TestStats:
    """Tests for /api/stats."""

    def test_stats(self, client):
        response = client.get("/api/stats")
        assert response.status_code == 200
        data = response.json()
        assert data['status'] == 'ready'
        assert data['logo_count'] == len(LOGOS)
        assert data['brand_count'] == 2
        assert data['brands_with_models'] == 1
        assert data['build']['records'] == len(RECORDS)
        assert data['build_count'] == 1


class TestLogoEndpoints:
    """Tests for /api/logos."""

    def test_list_sorted(self, client):
        data = client.get("/api/logos").json()
        names = [logo['name'] for logo in data['logos']]
        assert names[:3] == ['9ff', 'Alfa Romeo', 'Audi']
        assert data['total'] == data['count'] == len(LOGOS)
        assert data['groups'] == []

    def test_search(self, client):
        data = client.get("/api/logos", params={"q": "rome"}).json()
        assert [logo['slug'] for logo in data['logos']] == ['alfa-romeo']
        assert data['count'] == 1
        assert data['total'] == len(LOGOS)

    def test_grouped_desc(self, client):
        data = client.get("/api/logos", params={"group": "true", "sort": "name-desc"}).json()
        keys = [group['key'] for group in data['groups']]
        assert keys[0] == 'Z'
        assert keys[-1] == '#'
        assert data['logos'] == []

    def test_unknown_sort(self, client):
        assert client.get("/api/logos", params={"sort": "random"}).status_code == 400

    def test_asset_paths(self, client):
        logo = client.get("/api/logos", params={"q": "lada"}).json()['logos'][0]
        assert logo['thumb'] == '/car-logos-dataset/logos/thumb/lada.png'
        assert logo['is_local'] is False


class TestTierEndpoints:
    """Tests for /api/tiers."""

    def test_list_tiers(self, client):
        tiers = client.get("/api/tiers").json()
        assert [tier['id'] for tier in tiers] == [f'nivel-{level}' for level in range(1, 9)]
        assert sum(tier['count'] for tier in tiers) == len(LOGOS)
        assert tiers[0]['label'] == 'Fundamentos globales'

    def test_tier_logos(self, client):
        logos = client.get("/api/tiers/nivel-1").json()
        assert len(logos) == 2
        assert 'Volvo' in [logo['name'] for logo in logos]

    def test_unknown_tier(self, client):
        assert client.get("/api/tiers/nivel-9").status_code == 404


class TestSpecsEndpoints:
    """Tests for the brand and model endpoints."""

    def test_brands_with_models(self, client):
        brands = client.get("/api/brands").json()
        assert brands == [{'key': 'toyota', 'name': 'Toyota', 'model_count': 2}]

    def test_all_brands(self, client):
        brands = client.get("/api/brands", params={"with_models": "false"}).json()
        assert [brand['key'] for brand in brands] == ['kia', 'toyota']

    def test_brand_detail(self, client):
        data = client.get("/api/brands/Toyota").json()
        assert data['key'] == 'toyota'
        assert [model['key'] for model in data['models']] == ['corolla', 'gt86-gr86']
        gt86 = data['models'][1]
        assert gt86['generation_count'] == 2
        assert gt86['image_src'] == '/api/ultimatespecs/Toyota/gr86.png'

    def test_unknown_brand(self, client):
        assert client.get("/api/brands/lancia").status_code == 404

    def test_model_detail(self, client):
        data = client.get("/api/brands/toyota/models/gt86-gr86").json()
        assert data['brand_key'] == 'toyota'
        assert data['source'] == 'model'
        generations = {gen['name']: gen for gen in data['generations']}
        assert generations['Toyota GT86 2012-2020']['image_src'] == 'https://img.example.com/gt86.jpg'
        assert generations['Toyota GR86 2022-present']['image_src'] == '/api/ultimatespecs/Toyota/gr86.png'

    def test_unknown_model(self, client):
        assert client.get("/api/brands/toyota/models/supra").status_code == 404


class TestQuizEndpoints:
    """Tests for the quiz endpoints."""

    def test_tier_quiz(self, client):
        data = client.get("/api/quiz/tiers/nivel-1").json()
        assert data['id'] == 'nivel-1'
        assert data['title'] == 'Fundamentos globales'
        assert data['count'] == len(data['questions']) == 2
        for question in data['questions']:
            assert question['answer'] in [choice['value'] for choice in question['choices']]

    def test_tier_quiz_unknown(self, client):
        assert client.get("/api/quiz/tiers/expert").status_code == 404

    def test_model_quiz(self, client):
        data = client.get("/api/quiz/models/toyota").json()
        assert data['count'] == 1
        question = data['questions'][0]
        assert question['answer'] == 'GT86'
        assert question['image'] == '/api/ultimatespecs/Toyota/gr86.png'
        assert len(question['gallery']) == 2

    def test_model_quiz_unknown_brand(self, client):
        assert client.get("/api/quiz/models/lancia").status_code == 404


class TestAssetEndpoints:
    """Tests for image serving and asset redirects."""

    def test_serves_image(self, client):
        response = client.get("/api/ultimatespecs/Toyota/gr86.png")
        assert response.status_code == 200
        assert response.headers['content-type'] == 'image/png'
        assert response.headers['cache-control'] == 'public, max-age=31536000, immutable'
        assert response.content == b'\x89PNG\r\n'

    def test_serves_quoted_name(self, client):
        response = client.get("/api/ultimatespecs/Toyota/gt86%20white.jpg")
        assert response.status_code == 200
        assert response.headers['content-type'] == 'image/jpeg'

    def test_missing_image(self, client):
        assert client.get("/api/ultimatespecs/Toyota/supra.png").status_code == 404

    def test_directory_is_not_served(self, client):
        assert client.get("/api/ultimatespecs/Toyota").status_code == 404

    @pytest.mark.parametrize("path,safe", [
        ('Toyota/gr86.png', True),
        ('../secret.png', False),
        ('Toyota/../../secret.png', False),
        ('/etc/passwd', False),
        ('', False),
    ])
    def test_is_safe_relative_path(self, path, safe):
        assert is_safe_relative_path(path) is safe

    def test_logo_redirect(self, client):
        response = client.get("/api/logo/logos/optimized/bmw.png", follow_redirects=False)
        assert response.status_code == 302
        assert response.headers['location'] == '/car-logos-dataset/logos/optimized/bmw.png'

    def test_logo_outside_allowed_folders(self, client):
        assert client.get("/api/logo/private/bmw.png", follow_redirects=False).status_code == 404

    def test_logo_redirect_cdn(self, client, monkeypatch):
        monkeypatch.setattr(config, 'ASSET_MODE', 'cdn')
        monkeypatch.setattr(config, 'ASSET_BASE_URL', 'https://cdn.example.com')
        response = client.get("/api/logo/local-logos/zastava.png", follow_redirects=False)
        assert response.headers['location'] == 'https://cdn.example.com/car-logos-dataset/local-logos/zastava.png'

    @pytest.mark.parametrize("url,location", [
        ("/api/flags/es", "/flags/SVG/ES.svg"),
        ("/api/flags/es?size=128", "/flags/PNG-128/ES.png"),
        ("/api/flags/jp?size=64", "/flags/PNG-32/JP.png"),
    ])
    def test_flag_redirect(self, client, url, location):
        response = client.get(url, follow_redirects=False)
        assert response.status_code == 302
        assert response.headers['location'] == location
