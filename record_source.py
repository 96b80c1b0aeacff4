# -*- coding: utf-8 -*-
"""
Record and image sources for the specs index.

RawRecords come from exactly one configured source:

1. SPECS_RECORDS_URL - newline-delimited JSON fetched over HTTP
2. MONGO_URI         - documents of SPECS_MONGO_DB.SPECS_MONGO_COLLECTION
3. the first existing JSONL file among config.SPECS_RECORD_PATHS

The scraped dataset is best effort, so a source that cannot be read yields an
empty record list instead of an exception. Malformed lines are skipped.
"""
import json
import logging
import os
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import requests
from pydantic import ValidationError
from pymongo import MongoClient
from pymongo.errors import PyMongoError

import config
from normalizers import compact_key, normalize_key
from specs_models import RawRecord

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = frozenset(['.png', '.jpg', '.jpeg', '.webp'])

# Shortest compact key allowed to match a brand folder by containment
MIN_CONTAINMENT_KEY_LENGTH = 4

_client = None


# ============================================================================
# PARSING
# ============================================================================

def parse_record(data: Any) -> Optional[RawRecord]:
    """Validate one decoded record, or None if it is not a usable RawRecord."""
    if not isinstance(data, dict):
        return None
    try:
        return RawRecord.model_validate(data)
    except ValidationError:
        return None


def parse_jsonl(lines: Iterable[str]) -> List[RawRecord]:
    """Parse newline-delimited JSON, skipping blank and malformed lines."""
    records = []
    skipped = 0
    for line in lines:
        line = line.strip()
        if not line:
            continue
        try:
            data = json.loads(line)
        except ValueError:
            skipped += 1
            continue
        record = parse_record(data)
        if record is None:
            skipped += 1
            continue
        records.append(record)

    if skipped:
        logger.warning("Skipped %d malformed specs record(s)", skipped)
    return records


# ============================================================================
# SOURCES
# ============================================================================

def find_records_file(paths: Sequence[str]) -> Optional[str]:
    for path in paths:
        if path and os.path.isfile(path):
            return path
    return None


def load_records_from_file(path: str) -> List[RawRecord]:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return parse_jsonl(f)
    except (OSError, UnicodeDecodeError) as e:
        logger.error("Could not read specs records from %s: %s", path, e)
        return []


def fetch_records_from_url(url: str, timeout: Optional[float] = None) -> List[RawRecord]:
    """Download the JSONL dataset from a URL."""
    try:
        response = requests.get(url, timeout=timeout or config.HTTP_TIMEOUT)
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        logger.error("Specs records download failed (%s): %s", url, e)
        return []
    return parse_jsonl(response.text.splitlines())


def get_mongo_client(uri: Optional[str] = None) -> MongoClient:
    """Get singleton MongoDB client."""
    global _client
    if _client is None:
        _client = MongoClient(uri or config.MONGO_URI)
    return _client


def fetch_records_from_mongo(
    uri: Optional[str] = None,
    database: Optional[str] = None,
    collection: Optional[str] = None,
) -> List[RawRecord]:
    """
    Fetch specs records stored as documents in MongoDB.

    Only the RawRecord fields are projected; documents that do not validate
    are skipped like malformed JSONL lines.
    """
    fields = ['category', 'url', 'brand', 'name', 'years', 'image_url', 'local_image']
    projection: Dict[str, int] = {f: 1 for f in fields}
    projection['_id'] = 0

    try:
        client = get_mongo_client(uri)
        coll = client[database or config.SPECS_MONGO_DB][collection or config.SPECS_MONGO_COLLECTION]
        documents = list(coll.find({}, projection))
    except PyMongoError as e:
        logger.error("Specs records query failed: %s", e)
        return []

    records = [record for record in (parse_record(doc) for doc in documents) if record is not None]
    if len(records) != len(documents):
        logger.warning("Skipped %d malformed specs document(s)", len(documents) - len(records))
    return records


def load_records(
    paths: Optional[Sequence[str]] = None,
    url: Optional[str] = None,
    mongo_uri: Optional[str] = None,
) -> List[RawRecord]:
    """
    Load RawRecords from the configured source.

    Arguments default to the values in config; the first configured source is
    used and an unreadable source degrades to an empty list.
    """
    url = url if url is not None else config.SPECS_RECORDS_URL
    if url:
        logger.info("Loading specs records from %s", url)
        return fetch_records_from_url(url)

    mongo_uri = mongo_uri if mongo_uri is not None else config.MONGO_URI
    if mongo_uri:
        logger.info("Loading specs records from MongoDB")
        return fetch_records_from_mongo(mongo_uri)

    path = find_records_file(paths if paths is not None else config.SPECS_RECORD_PATHS)
    if not path:
        logger.warning("No specs records file found; the specs index will be empty")
        return []

    logger.info("Loading specs records from %s", path)
    return load_records_from_file(path)


# ============================================================================
# BRAND IMAGE FOLDERS
# ============================================================================

def _contains_either_way(folder_key: str, brand_key: str) -> bool:
    """Containment between compact keys; the shorter one must be at least 4 characters."""
    if min(len(folder_key), len(brand_key)) < MIN_CONTAINMENT_KEY_LENGTH:
        return False
    return folder_key in brand_key or brand_key in folder_key


class ImageLibrary:
    """
    Read-only view of the specs image root: one folder per brand.

    Directory listings are read once and memoized.
    """

    def __init__(self, root: Optional[str]):
        self.root = root
        self._folders: Optional[List[str]] = None
        self._files: Dict[str, List[str]] = {}
        self._resolved: Dict[str, Optional[str]] = {}

    def folders(self) -> List[str]:
        if self._folders is None:
            try:
                self._folders = sorted(
                    entry.name for entry in os.scandir(self.root)
                    if entry.is_dir()
                ) if self.root else []
            except OSError as e:
                logger.warning("Image root %s unavailable: %s", self.root, e)
                self._folders = []
        return self._folders

    def files(self, folder: str) -> List[str]:
        if folder not in self._files:
            try:
                self._files[folder] = sorted(
                    entry.name for entry in os.scandir(os.path.join(self.root, folder))
                    if entry.is_file() and os.path.splitext(entry.name)[1].lower() in IMAGE_EXTENSIONS
                )
            except OSError as e:
                logger.warning("Image folder %s unavailable: %s", folder, e)
                self._files[folder] = []
        return self._files[folder]

    def resolve_brand_folder(self, brand_name: str) -> Optional[str]:
        """
        Find the folder holding a brand's images.

        Tries, in order: same normalized key, same key without dashes, then
        containment either way (longest folder name wins). Containment needs
        both compact keys to be at least MIN_CONTAINMENT_KEY_LENGTH long, so
        "AC" does not resolve to "Cadillac".
        """
        if brand_name in self._resolved:
            return self._resolved[brand_name]

        brand_key = normalize_key(brand_name)
        brand_compact = compact_key(brand_name)
        folder = None

        if brand_key:
            by_key = {normalize_key(name): name for name in self.folders()}
            folder = by_key.get(brand_key)
            if folder is None:
                by_compact = {compact_key(name): name for name in self.folders()}
                folder = by_compact.get(brand_compact)
            if folder is None:
                candidates = [
                    name for name in self.folders()
                    if _contains_either_way(compact_key(name), brand_compact)
                ]
                if candidates:
                    folder = max(candidates, key=lambda name: (len(name), name))

        self._resolved[brand_name] = folder
        return folder

    def files_for_brand(self, brand_name: str) -> Tuple[Optional[str], List[str]]:
        """(folder, filenames) for a brand, or (None, []) when no folder matches."""
        folder = self.resolve_brand_folder(brand_name)
        if folder is None:
            return None, []
        return folder, self.files(folder)
