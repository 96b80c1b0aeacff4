"""
Tests for quiz question generation and run bookkeeping.
"""

import random

from logos import Logo, LogoImages
from quiz import (
    QuizRun, accuracy, build_choices, build_logo_quiz, build_model_quiz,
    check_typed_answer, is_better_run, shuffle,
)
from specs_index import image_src
from specs_models import SpecsBrand, SpecsGeneration, SpecsImage, SpecsModel


def make_logo(name):
    slug = name.lower().replace(' ', '-')
    path = f'/car-logos-dataset/logos/optimized/{slug}.png'
    return Logo(name=name, slug=slug, images=LogoImages(thumb=path, optimized=path, original=path))


def make_model(name, image_url=None):
    key = name.lower()
    generations = []
    if image_url:
        generations.append(SpecsGeneration(id=f'bmw:{key}:{key}', name=name, image=SpecsImage(url=image_url),
                                           model_key=key, brand_key='bmw'))
    return SpecsModel(
        id=f'bmw:{key}',
        name=name,
        brand='BMW',
        brand_key='bmw',
        key=key,
        generations=generations,
        representative_image=SpecsImage(url=image_url) if image_url else None,
    )


def run(completed, accuracy_pct, time_ms, total=10):
    return QuizRun(accuracy=accuracy_pct, time_ms=time_ms, completed=completed, total=total)


class TestShuffle:
    """Tests for shuffle()."""

    def test_is_permutation(self):
        items = list(range(20))
        shuffled = shuffle(items, random.Random(7))
        assert sorted(shuffled) == items

    def test_does_not_mutate_input(self):
        items = [1, 2, 3, 4]
        shuffle(items, random.Random(1))
        assert items == [1, 2, 3, 4]

    def test_seeded_is_reproducible(self):
        items = list('abcdefgh')
        assert shuffle(items, random.Random(3)) == shuffle(items, random.Random(3))

    def test_empty(self):
        assert shuffle([], random.Random(1)) == []


class TestBuildChoices:
    """Tests for build_choices()."""

    def test_contains_correct_and_three_distractors(self):
        pool = ['Audi', 'BMW', 'Kia', 'Lada', 'Seat', 'Fiat']
        choices = build_choices('BMW', pool, rng=random.Random(2))
        values = [choice.value for choice in choices]
        assert len(values) == 4
        assert len(set(values)) == 4
        assert 'BMW' in values
        assert set(values) <= set(pool)

    def test_small_pool(self):
        values = [choice.value for choice in build_choices('BMW', ['BMW', 'Kia', 'Kia'], rng=random.Random(2))]
        assert sorted(values) == ['BMW', 'Kia']

    def test_label_matches_value(self):
        for choice in build_choices('BMW', ['Audi'], rng=random.Random(2)):
            assert choice.label == choice.value


class TestBuildLogoQuiz:
    """Tests for build_logo_quiz()."""

    def test_one_question_per_logo(self):
        logos = [make_logo(name) for name in ('Audi', 'BMW', 'Kia', 'Land Rover', 'Seat')]
        questions = build_logo_quiz(logos, rng=random.Random(4))
        assert sorted(question.id for question in questions) == sorted(logo.slug for logo in logos)

    def test_question_fields(self):
        questions = build_logo_quiz([make_logo('Land Rover')], rng=random.Random(4))
        question = questions[0]
        assert question.answer == 'Land Rover'
        assert question.letters == 9
        assert question.image == '/car-logos-dataset/logos/optimized/land-rover.png'
        assert [choice.value for choice in question.choices] == ['Land Rover']

    def test_custom_image(self):
        questions = build_logo_quiz([make_logo('Kia')], image_for=lambda logo: logo.images.thumb,
                                    rng=random.Random(4))
        assert questions[0].image.endswith('/kia.png')


class TestBuildModelQuiz:
    """Tests for build_model_quiz()."""

    def test_only_models_with_images(self):
        brand = SpecsBrand(name='BMW', key='bmw', models=[
            make_model('X5', 'https://img/x5.jpg'),
            make_model('Z3'),
            make_model('M3', 'https://img/m3.jpg'),
        ])
        questions = build_model_quiz(brand, image_src, rng=random.Random(5))
        assert sorted(question.answer for question in questions) == ['M3', 'X5']
        for question in questions:
            assert 'Z3' not in [choice.value for choice in question.choices]

    def test_gallery(self):
        brand = SpecsBrand(name='BMW', key='bmw', models=[make_model('X5', 'https://img/x5.jpg')])
        question = build_model_quiz(brand, image_src, rng=random.Random(5))[0]
        assert question.image == 'https://img/x5.jpg'
        assert question.gallery == ['https://img/x5.jpg']
        assert question.id == 'bmw:x5'

    def test_brand_without_images(self):
        brand = SpecsBrand(name='BMW', key='bmw', models=[make_model('Z3')])
        assert build_model_quiz(brand, image_src) == []


class TestAnswersAndRuns:
    """Tests for answer checking, accuracy and best-run comparison."""

    def test_typed_answer(self):
        assert check_typed_answer('Land Rover', '  land rover ')
        assert not check_typed_answer('Land Rover', 'landrover')

    def test_accuracy(self):
        assert accuracy(2, 3) == 67
        assert accuracy(1, 8) == 13
        assert accuracy(0, 0) == 0

    def test_first_run_is_best(self):
        assert is_better_run(run(5, 80, 1000), None)

    def test_more_completed_wins(self):
        assert is_better_run(run(6, 50, 9000), run(5, 100, 1000))

    def test_accuracy_breaks_ties(self):
        assert is_better_run(run(5, 90, 9000), run(5, 80, 1000))
        assert not is_better_run(run(5, 70, 100), run(5, 80, 1000))

    def test_time_breaks_remaining_ties(self):
        assert is_better_run(run(5, 80, 900), run(5, 80, 1000))
        assert not is_better_run(run(5, 80, 1000), run(5, 80, 1000))
