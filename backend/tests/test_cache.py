import threading
import time

import pytest

from fakes import FakeClock
from quizworld.errors import UpstreamUnavailable
from quizworld.services.quiz.cache import ReferenceCache


class CountingLoader:
    def __init__(self, values=None):
        self.calls = 0
        self.values = values or {}
        self.fail = False

    def __call__(self, key):
        self.calls += 1
        if self.fail:
            raise ConnectionError('upstream down')
        return self.values.get(key, (key, self.calls))


def test_fresh_entry_is_served_without_upstream_call():
    clock = FakeClock()
    loader = CountingLoader()
    cache = ReferenceCache(loader, ttl_seconds=3600, clock=clock)

    first = cache.get('countries')
    clock.now = 3599
    second = cache.get('countries')

    assert first == second == ('countries', 1)
    assert loader.calls == 1


def test_stale_entry_is_replaced_after_ttl():
    clock = FakeClock()
    loader = CountingLoader()
    cache = ReferenceCache(loader, ttl_seconds=3600, clock=clock)

    cache.get('countries')
    clock.now = 3600
    refreshed = cache.get('countries')

    assert refreshed == ('countries', 2)
    assert loader.calls == 2


def test_upstream_failure_serves_stale_value():
    clock = FakeClock()
    loader = CountingLoader()
    cache = ReferenceCache(loader, ttl_seconds=10, clock=clock)
    cache.get('countries')

    loader.fail = True
    clock.now = 50
    assert cache.get('countries') == ('countries', 1)
    assert loader.calls == 2


def test_upstream_failure_without_entry_raises_and_does_not_stick():
    loader = CountingLoader()
    loader.fail = True
    cache = ReferenceCache(loader, ttl_seconds=10, clock=FakeClock())

    with pytest.raises(UpstreamUnavailable) as excinfo:
        cache.get('countries')
    assert isinstance(excinfo.value.__cause__, ConnectionError)

    loader.fail = False
    assert cache.get('countries') == ('countries', 2)


def test_concurrent_cold_reads_share_one_fetch():
    entered = threading.Event()
    release = threading.Event()
    calls = []

    def slow_loader(key):
        calls.append(key)
        entered.set()
        release.wait(5)
        return ('FR', 'PE')

    cache = ReferenceCache(slow_loader, ttl_seconds=3600)
    results = []

    def reader():
        results.append(cache.get('countries'))

    first = threading.Thread(target=reader)
    first.start()
    assert entered.wait(5)
    second = threading.Thread(target=reader)
    second.start()
    time.sleep(0.05)
    release.set()
    first.join(5)
    second.join(5)

    assert len(calls) == 1
    assert results == [('FR', 'PE'), ('FR', 'PE')]


def test_waiters_share_the_leaders_failure():
    entered = threading.Event()
    release = threading.Event()

    def failing_loader(key):
        entered.set()
        release.wait(5)
        raise TimeoutError('too slow')

    cache = ReferenceCache(failing_loader, ttl_seconds=3600)
    errors = []

    def reader():
        try:
            cache.get('countries')
        except UpstreamUnavailable as exc:
            errors.append(exc)

    first = threading.Thread(target=reader)
    first.start()
    assert entered.wait(5)
    second = threading.Thread(target=reader)
    second.start()
    time.sleep(0.05)
    release.set()
    first.join(5)
    second.join(5)

    assert len(errors) == 2


def test_invalidate_and_peek():
    loader = CountingLoader()
    cache = ReferenceCache(loader, ttl_seconds=3600, clock=FakeClock())
    assert cache.peek('countries') is None

    cache.get('countries')
    assert cache.peek('countries') == ('countries', 1)

    cache.invalidate('countries')
    assert cache.peek('countries') is None
    assert cache.get('countries') == ('countries', 2)


def test_ttl_must_be_positive():
    with pytest.raises(ValueError):
        ReferenceCache(CountingLoader(), ttl_seconds=0)


class Interrupted(BaseException):
    pass


def test_interrupted_fetch_does_not_wedge_the_key():
    calls = []

    def loader(key):
        calls.append(key)
        if len(calls) == 1:
            raise Interrupted()
        return ('FR',)

    cache = ReferenceCache(loader, ttl_seconds=3600)
    with pytest.raises(Interrupted):
        cache.get('countries')

    results = []
    reader = threading.Thread(target=lambda: results.append(cache.get('countries')))
    reader.start()
    reader.join(2)
    assert not reader.is_alive()
    assert results == [('FR',)]
    assert len(calls) == 2


def test_waiters_are_released_when_the_fetch_is_interrupted():
    entered = threading.Event()
    release = threading.Event()

    def loader(key):
        entered.set()
        release.wait(5)
        raise Interrupted()

    cache = ReferenceCache(loader, ttl_seconds=3600)
    outcomes = []

    def leader():
        try:
            cache.get('countries')
        except Interrupted:
            outcomes.append('interrupted')

    def waiter():
        try:
            cache.get('countries')
        except UpstreamUnavailable:
            outcomes.append('unavailable')
        except Interrupted:
            # arrived after the marker was cleared and led its own fetch
            outcomes.append('interrupted')

    first = threading.Thread(target=leader)
    first.start()
    assert entered.wait(5)
    second = threading.Thread(target=waiter)
    second.start()
    time.sleep(0.05)
    release.set()
    first.join(5)
    second.join(5)

    assert not second.is_alive()
    assert len(outcomes) == 2
    assert 'interrupted' in outcomes
