"""Country reference data: records, upstream loaders and a cached directory."""

import json
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import requests
from flask import current_app

from quizworld.errors import UpstreamUnavailable

NOT_AVAILABLE = 'N/A'
COUNTRIES_CACHE_KEY = 'countries'
RESTCOUNTRIES_FIELDS = 'name,cca2,capital,population,area,flags,latlng,region'


@dataclass(frozen=True)
class CountryRecord:
    iso_code: str
    common_name: str
    official_name: str = NOT_AVAILABLE
    capital: str = NOT_AVAILABLE
    region: str = NOT_AVAILABLE
    population: Optional[int] = None
    area: Optional[float] = None
    souvenirs: str = NOT_AVAILABLE
    traditional_cuisine: str = NOT_AVAILABLE
    flag_url: str = ''
    latlng: Tuple[float, ...] = ()

    def to_dict(self):
        return {
            'iso_code': self.iso_code,
            'common_name': self.common_name,
            'official_name': self.official_name,
            'capital': self.capital,
            'region': self.region,
            'population': self.population,
            'area': self.area,
            'souvenirs': self.souvenirs,
            'traditional_cuisine': self.traditional_cuisine,
            'flag': self.flag_url,
        }

    def to_feature(self):
        """Shape consumed by the globe view."""
        return {
            'id': self.iso_code,
            'type': 'Feature',
            'properties': {
                'NAME': self.common_name,
                'CAPITAL': self.capital,
                'POP_EST': self.population,
                'AREA': self.area,
                'FLAG': self.flag_url,
                'LATLNG': list(self.latlng),
                'REGION': self.region,
            },
        }


def _text(value) -> str:
    if isinstance(value, list):
        value = value[0] if value else None
    value = (value or '').strip() if isinstance(value, str) else value
    return value or NOT_AVAILABLE


def _record_from_restcountries(item: dict) -> Optional[CountryRecord]:
    iso_code = (item.get('cca2') or '').strip().upper()
    name = item.get('name') or {}
    common_name = (name.get('common') or '').strip()
    if not iso_code or not common_name:
        return None
    flags = item.get('flags') or {}
    return CountryRecord(
        iso_code=iso_code,
        common_name=common_name,
        official_name=_text(name.get('official')),
        capital=_text(item.get('capital')),
        region=_text(item.get('region')),
        population=item.get('population'),
        area=item.get('area'),
        flag_url=(flags.get('png') or '').strip(),
        latlng=tuple(item.get('latlng') or ()),
    )


def fetch_restcountries(url: str, timeout: float = 20) -> Tuple[CountryRecord, ...]:
    resp = requests.get(url, params={'fields': RESTCOUNTRIES_FIELDS}, timeout=timeout)
    resp.raise_for_status()
    records = [_record_from_restcountries(item) for item in resp.json()]
    return tuple(sorted((r for r in records if r), key=lambda r: r.common_name))


def load_country_file(path: str, logger: Optional[logging.Logger] = None) -> Tuple[CountryRecord, ...]:
    """Read the enriched dataset written by the offline harvesting job."""
    logger = logger or logging.getLogger(__name__)
    with open(path, 'r', encoding='utf-8') as fh:
        rows = json.load(fh)
    records = []
    for row in rows:
        iso_code = (row.get('iso_code') or '').strip().upper()
        if not iso_code:
            logger.warning(f"[countries-skip] name={row.get('common_name')} missing iso_code")
            continue
        records.append(CountryRecord(
            iso_code=iso_code,
            common_name=_text(row.get('common_name')),
            official_name=_text(row.get('official_name')),
            capital=_text(row.get('capital')),
            region=_text(row.get('region')),
            population=row.get('population') if isinstance(row.get('population'), int) else None,
            area=row.get('area') if isinstance(row.get('area'), (int, float)) else None,
            souvenirs=_text(row.get('souvenirs')),
            traditional_cuisine=_text(row.get('traditional_cuisine')),
            flag_url=(row.get('flag') or '').strip(),
            latlng=tuple(row.get('latlng') or ()),
        ))
    return tuple(records)


def load_countries(config, logger: Optional[logging.Logger] = None) -> Tuple[CountryRecord, ...]:
    """Upstream loader for the country cache, chosen by configuration."""
    path = config.get('COUNTRIES_DATA_FILE')
    if path:
        return load_country_file(path, logger=logger)
    return fetch_restcountries(
        config.get('COUNTRIES_API_URL', 'https://restcountries.com/v3.1/all'),
        timeout=config.get('UPSTREAM_TIMEOUT_SEC', 20),
    )


class CountryDirectory:
    """Read-only view over the cached country records, keyed by ISO code."""

    def __init__(self, cache, key: str = COUNTRIES_CACHE_KEY):
        self._cache = cache
        self._key = key

    @property
    def cache(self):
        return self._cache

    def all(self) -> Tuple[CountryRecord, ...]:
        return self._cache.get(self._key)

    def get(self, iso_code: str) -> Optional[CountryRecord]:
        code = (iso_code or '').strip().upper()
        return next((c for c in self.all() if c.iso_code == code), None)

    def contains(self, iso_code: str) -> bool:
        return self.get(iso_code) is not None

    def resolve(self, selection) -> Optional[str]:
        """ISO code for a selection given as an ISO code or a country name."""
        text = str(selection or '').strip()
        if not text:
            return None
        code, folded = text.upper(), text.casefold()
        for c in self.all():
            if c.iso_code == code or c.common_name.casefold() == folded:
                return c.iso_code
            if c.official_name != NOT_AVAILABLE and c.official_name.casefold() == folded:
                return c.iso_code
        return None


def get_country_directory(app=None) -> CountryDirectory:
    app = app or current_app
    return app.extensions['quizworld.countries']


def resolve_selection(selection, app=None, logger: Optional[logging.Logger] = None) -> Optional[str]:
    """Map a player's selection to the ISO code quiz answers are stored as.

    Unknown selections map to None, which never matches. Without reference
    data the selection is only normalized, so ISO codes still verify.
    """
    if selection is None:
        return None
    try:
        return get_country_directory(app).resolve(selection)
    except UpstreamUnavailable:
        (logger or logging.getLogger(__name__)).warning(
            f"[countries-resolve-skip] selection={selection} reference data unavailable"
        )
        return str(selection).strip().upper() or None
