# -*- coding: utf-8 -*-
"""
Data types for the specs index.

RawRecord is one scraped line of the specs dataset. SpecsBrand, SpecsModel
and SpecsGeneration form the brand -> model -> generation tree built by
specs_index.SpecsIndexBuilder. They are only mutated while the index is being
built; consumers treat them as read-only.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


class RawRecord(BaseModel):
    category: Literal['Model', 'Generation']
    url: str = ''
    brand: str = ''
    name: str = ''
    years: str = ''
    image_url: Optional[str] = None
    local_image: Optional[str] = None

    @field_validator('url', 'brand', 'name', 'years', mode='before')
    @classmethod
    def null_to_empty(cls, value):
        # Scraped lines carry explicit nulls for missing text fields
        return '' if value is None else value


class SpecsImage(BaseModel):
    local: Optional[str] = None
    url: Optional[str] = None

    def has_image(self) -> bool:
        return bool(self.local or self.url)


class SpecsGeneration(BaseModel):
    id: str
    name: str
    years: str = ''
    image: SpecsImage = Field(default_factory=SpecsImage)
    model_key: str
    brand_key: str


class SpecsModel(BaseModel):
    id: str
    name: str
    years: str = ''
    brand: str
    brand_key: str
    key: str
    generations: List[SpecsGeneration] = Field(default_factory=list)
    representative_image: Optional[SpecsImage] = None
    source: Literal['model', 'generation'] = 'model'


class SpecsBrand(BaseModel):
    name: str
    key: str
    models: List[SpecsModel] = Field(default_factory=list)
