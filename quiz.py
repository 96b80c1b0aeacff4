# -*- coding: utf-8 -*-
"""
Quiz helpers

Stateless question generation for the logo and model recognition quizzes.
Runs and best scores stay on the client; the server only hands out shuffled
question sets and the comparison rule for best runs.
"""
import random
from typing import Callable, List, Optional, Sequence, TypeVar

from pydantic import BaseModel

from logos import Logo
from specs_models import SpecsBrand

T = TypeVar('T')

DISTRACTOR_COUNT = 3


class QuizChoice(BaseModel):
    value: str
    label: str


class QuizQuestion(BaseModel):
    id: str
    answer: str
    choices: List[QuizChoice]
    image: Optional[str] = None
    gallery: List[str] = []
    letters: int = 0


class QuizRun(BaseModel):
    accuracy: int
    time_ms: int
    completed: int
    total: int
    completed_at: Optional[int] = None


def shuffle(items: Sequence[T], rng: Optional[random.Random] = None) -> List[T]:
    """Shuffled copy (Fisher-Yates)."""
    rng = rng or random.Random()
    clone = list(items)
    for i in range(len(clone) - 1, 0, -1):
        j = rng.randint(0, i)
        clone[i], clone[j] = clone[j], clone[i]
    return clone


def build_choices(
    correct: str,
    pool: Sequence[str],
    count: int = DISTRACTOR_COUNT,
    rng: Optional[random.Random] = None,
) -> List[QuizChoice]:
    """The correct answer plus up to `count` distinct distractors, shuffled."""
    rng = rng or random.Random()
    distractors = []
    for value in shuffle(pool, rng):
        if value == correct or value in distractors:
            continue
        distractors.append(value)
        if len(distractors) == count:
            break
    return [QuizChoice(value=value, label=value) for value in shuffle([correct] + distractors, rng)]


def build_logo_quiz(
    logos: Sequence[Logo],
    image_for: Callable[[Logo], str] = lambda logo: logo.images.optimized,
    rng: Optional[random.Random] = None,
) -> List[QuizQuestion]:
    """One multiple-choice question per logo, in shuffled order."""
    rng = rng or random.Random()
    names = [logo.name for logo in logos]
    questions = []
    for logo in shuffle(logos, rng):
        questions.append(QuizQuestion(
            id=logo.slug,
            answer=logo.name,
            choices=build_choices(logo.name, names, rng=rng),
            image=image_for(logo),
            letters=len(''.join(logo.name.split())),
        ))
    return questions


def build_model_quiz(
    brand: SpecsBrand,
    image_src: Callable,
    rng: Optional[random.Random] = None,
) -> List[QuizQuestion]:
    """
    One question per model of the brand that has a representative image.

    Each question carries the gallery of its generation images.
    """
    rng = rng or random.Random()
    eligible = [model for model in brand.models if image_src(model.representative_image)]
    names = [model.name for model in eligible]
    questions = []
    for model in shuffle(eligible, rng):
        gallery = [src for src in (image_src(gen.image) for gen in model.generations) if src]
        questions.append(QuizQuestion(
            id=model.id,
            answer=model.name,
            choices=build_choices(model.name, names, rng=rng),
            image=image_src(model.representative_image),
            gallery=gallery,
            letters=len(''.join(model.name.split())),
        ))
    return questions


def check_typed_answer(expected: str, typed: str) -> bool:
    """Typed mode: trimmed, case-insensitive equality."""
    return typed.strip().lower() == expected.strip().lower()


def accuracy(correct: int, answered: int) -> int:
    """Rounded percentage of correct answers (0 when nothing was answered)."""
    if answered <= 0:
        return 0
    return int(correct * 100 / answered + 0.5)


def is_better_run(run: QuizRun, best: Optional[QuizRun]) -> bool:
    """
    Whether a finished run replaces the stored best run.

    More answered questions wins, then higher accuracy, then lower time.
    """
    if best is None:
        return True
    if run.completed != best.completed:
        return run.completed > best.completed
    if run.accuracy != best.accuracy:
        return run.accuracy > best.accuracy
    return run.time_ms < best.time_ms
