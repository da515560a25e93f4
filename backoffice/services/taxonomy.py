import json
from enum import Enum
from pathlib import Path
from threading import Lock
from typing import Dict, List, Optional

from pydantic import BaseModel

from backoffice.utils.log import app_logger

DATA_DIR = Path(__file__).resolve().parent.parent / "data"


class DataKey(str, Enum):
    REGIONS = "regions"
    LANGUAGES = "languages"
    THEMES = "themes"
    COUNTRIES = "countries"
    EVENT_TYPES = "event_types"
    SONG_TYPES = "song_types"


class SelectItem(BaseModel):
    id: int
    nom: str


class Region(SelectItem):
    region_geographique_libelle: str


ITEM_TYPES = {key: (Region if key is DataKey.REGIONS else SelectItem) for key in DataKey}


class TaxonomyStore:
    """Static reference lists (regions, languages, ...) used by the forms.

    Raw lists are read from the bundled JSON files on first use; processed
    lists get sequential ids and are cached until `reset`.
    """

    def __init__(self, data_dir: Path = DATA_DIR):
        self.data_dir = data_dir
        self._raw: Dict[DataKey, List[dict]] = {}
        self._data: Dict[DataKey, Optional[List[SelectItem]]] = {key: None for key in DataKey}
        self._lock = Lock()

    def _raw_list(self, key: DataKey) -> List[dict]:
        if key not in self._raw:
            with open(self.data_dir / f"{key.value}.json", "r", encoding="utf-8") as f:
                self._raw[key] = json.load(f)
        return self._raw[key]

    def get(self, key: DataKey) -> List[SelectItem]:
        key = DataKey(key)
        with self._lock:
            cached = self._data[key]
            if cached is not None:
                return cached
            item_type = ITEM_TYPES[key]
            items = [item_type(id=i, **{k: v for k, v in raw.items() if k != "id"})
                     for i, raw in enumerate(self._raw_list(key))]
            self._data[key] = items
            app_logger.debug("taxonomy.loaded", key=key.value, count=len(items))
            return items

    def reset(self, key: DataKey) -> None:
        with self._lock:
            self._data[DataKey(key)] = None
        app_logger.info("taxonomy.reset", key=DataKey(key).value)

    def _add(self, key: DataKey, fields: dict) -> SelectItem:
        with self._lock:
            raw = self._raw_list(key)
            item = ITEM_TYPES[key](id=len(raw), **fields)
            raw.append(fields)
            if self._data[key] is not None:
                self._data[key].append(item)
        app_logger.info("taxonomy.added", key=key.value, nom=item.nom)
        return item

    def add_country(self, nom: str) -> SelectItem:
        return self._add(DataKey.COUNTRIES, {"nom": nom})

    def add_region(self, nom: str, region_geographique_libelle: str) -> Region:
        return self._add(DataKey.REGIONS, {"nom": nom, "region_geographique_libelle": region_geographique_libelle})
