import os

from conftest import DATA_DIR
from quizworld.errors import UpstreamUnavailable
from quizworld.services.quiz import countries as countries_module
from quizworld.services.quiz.cache import ReferenceCache
from quizworld.services.quiz.countries import (
    CountryDirectory,
    fetch_restcountries,
    load_countries,
    load_country_file,
    resolve_selection,
)

COUNTRIES_FILE = os.path.join(DATA_DIR, 'countries.json')


class FakeResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise RuntimeError(f'HTTP {self.status}')

    def json(self):
        return self.payload


def test_country_file_requires_explicit_iso_code():
    records = load_country_file(COUNTRIES_FILE)
    codes = [r.iso_code for r in records]
    assert codes == ['FR', 'PE', 'JP', 'AU', 'IN']
    france = records[0]
    assert france.capital == 'Paris'
    assert france.traditional_cuisine == 'Coq au vin'
    assert france.to_dict()['flag'].endswith('fr.png')


def test_restcountries_mapping(monkeypatch):
    captured = {}

    def fake_get(url, params=None, timeout=None):
        captured.update(url=url, params=params, timeout=timeout)
        return FakeResponse([
            {
                'name': {'common': 'Peru', 'official': 'Republic of Peru'},
                'cca2': 'pe',
                'capital': ['Lima'],
                'population': 32971846,
                'area': 1285216,
                'flags': {'png': 'https://flagcdn.com/w320/pe.png'},
                'latlng': [-10.0, -76.0],
                'region': 'Americas',
            },
            {'name': {'common': 'Nowhere'}, 'flags': {}},
            {
                'name': {'common': 'Antarctica'},
                'cca2': 'AQ',
                'flags': {'png': 'https://flagcdn.com/w320/aq.png'},
                'region': 'Antarctic',
            },
        ])

    monkeypatch.setattr(countries_module.requests, 'get', fake_get)
    records = fetch_restcountries('https://example.test/v3.1/all', timeout=3)

    assert captured['timeout'] == 3
    assert 'cca2' in captured['params']['fields']
    assert [r.iso_code for r in records] == ['AQ', 'PE']
    antarctica, peru = records
    assert antarctica.capital == 'N/A'
    assert peru.official_name == 'Republic of Peru'
    feature = peru.to_feature()
    assert feature['id'] == 'PE'
    assert feature['properties']['LATLNG'] == [-10.0, -76.0]


def test_load_countries_prefers_configured_file(monkeypatch):
    def boom(*args, **kwargs):
        raise AssertionError('network should not be used')

    monkeypatch.setattr(countries_module.requests, 'get', boom)
    records = load_countries({'COUNTRIES_DATA_FILE': COUNTRIES_FILE})
    assert len(records) == 5


def test_directory_lookup_is_case_insensitive():
    directory = CountryDirectory(ReferenceCache(lambda key: load_country_file(COUNTRIES_FILE), ttl_seconds=60))
    assert directory.get('fr').common_name == 'France'
    assert directory.contains(' jp ')
    assert not directory.contains('ZZ')


def test_countries_endpoint_enriched_shape(client):
    res = client.get('/api/countries')
    assert res.status_code == 200
    data = res.get_json()
    assert [c['iso_code'] for c in data] == ['FR', 'PE', 'JP', 'AU', 'IN']
    assert set(data[0]) >= {
        'common_name', 'official_name', 'capital', 'region', 'population',
        'area', 'souvenirs', 'traditional_cuisine', 'flag',
    }


def test_countries_endpoint_feature_shape(client):
    res = client.get('/api/countries?shape=feature')
    assert res.status_code == 200
    first = res.get_json()[0]
    assert first['id'] == 'FR'
    assert first['properties']['NAME'] == 'France'
    assert first['properties']['CAPITAL'] == 'Paris'


def test_single_country_endpoint(client):
    assert client.get('/api/countries/pe').get_json()['common_name'] == 'Peru'
    assert client.get('/api/countries/zz').status_code == 404


def test_countries_endpoint_reports_upstream_failure(flask_app, client):
    def broken(key):
        raise ConnectionError('restcountries unreachable')

    flask_app.extensions['quizworld.countries'] = CountryDirectory(ReferenceCache(broken, ttl_seconds=60))
    res = client.get('/api/countries')
    assert res.status_code == 500
    assert res.get_json() == {'error': 'Failed to fetch countries'}


def test_countries_are_fetched_once_per_ttl(flask_app, client):
    calls = []

    def loader(key):
        calls.append(key)
        return load_country_file(COUNTRIES_FILE)

    flask_app.extensions['quizworld.countries'] = CountryDirectory(ReferenceCache(loader, ttl_seconds=3600))
    for _ in range(3):
        assert client.get('/api/countries').status_code == 200
    assert client.get('/api/countries/fr').status_code == 200
    assert len(calls) == 1


def test_upstream_unavailable_is_a_quiz_error():
    from quizworld.errors import QuizError
    assert issubclass(UpstreamUnavailable, QuizError)


def test_selection_resolves_to_iso_code():
    directory = CountryDirectory(ReferenceCache(lambda key: load_country_file(COUNTRIES_FILE), ttl_seconds=60))
    assert directory.resolve('fr') == 'FR'
    assert directory.resolve(' peru ') == 'PE'
    assert directory.resolve('Commonwealth of Australia') == 'AU'
    assert directory.resolve('n/a') is None
    assert directory.resolve('Atlantis') is None
    assert directory.resolve('') is None


def test_resolve_selection_without_reference_data(flask_app):
    def broken(key):
        raise ConnectionError('restcountries unreachable')

    flask_app.extensions['quizworld.countries'] = CountryDirectory(ReferenceCache(broken, ttl_seconds=60))
    # codes still verify; names cannot be mapped without the directory
    assert resolve_selection(' fr ') == 'FR'
    assert resolve_selection('France') == 'FRANCE'
    assert resolve_selection(None) is None
