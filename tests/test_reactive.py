from __future__ import annotations

import logging

import pytest

from pyhydrated.reactive import ReactiveStore, action, observable


class _Settings(ReactiveStore):
    theme = observable("light")
    volume = observable(5)
    tags = observable(factory=list)

    @action
    def apply(self, theme: str, volume: int) -> None:
        self.theme = theme
        self.volume = volume


def _counting(store: ReactiveStore) -> list[int]:
    calls: list[int] = []
    store.subscribe(lambda: calls.append(1))
    return calls


def test_assignment_notifies_subscribers() -> None:
    settings = _Settings()
    calls = _counting(settings)

    settings.theme = "dark"

    assert settings.theme == "dark"
    assert len(calls) == 1


def test_assigning_equal_value_does_not_notify() -> None:
    settings = _Settings()
    calls = _counting(settings)

    settings.volume = 5
    settings.theme = "light"

    assert calls == []


def test_batch_coalesces_notifications() -> None:
    settings = _Settings()
    calls = _counting(settings)

    with settings.batch():
        settings.theme = "dark"
        with settings.batch():
            settings.volume = 7
        assert calls == []

    assert len(calls) == 1


def test_action_runs_in_batch() -> None:
    settings = _Settings()
    calls = _counting(settings)

    settings.apply("dark", 9)

    assert (settings.theme, settings.volume) == ("dark", 9)
    assert len(calls) == 1


def test_batch_without_changes_does_not_notify() -> None:
    settings = _Settings()
    calls = _counting(settings)

    with settings.batch():
        settings.volume = 5

    assert calls == []


def test_unsubscribe_stops_notifications_and_is_idempotent() -> None:
    settings = _Settings()
    calls: list[int] = []
    unsubscribe = settings.subscribe(lambda: calls.append(1))

    unsubscribe()
    unsubscribe()
    settings.theme = "dark"

    assert calls == []


def test_failing_subscriber_does_not_block_others(caplog: pytest.LogCaptureFixture) -> None:
    settings = _Settings()

    def _fail() -> None:
        raise RuntimeError("subscriber failed")

    settings.subscribe(_fail)
    calls = _counting(settings)

    with caplog.at_level(logging.ERROR, logger="pyhydrated.reactive"):
        settings.theme = "dark"

    assert len(calls) == 1
    assert "subscriber" in caplog.text


def test_factory_default_is_per_instance() -> None:
    first = _Settings()
    second = _Settings()

    first.tags.append("x")

    assert first.tags == ["x"]
    assert second.tags == []


def test_observable_requires_default_or_factory() -> None:
    with pytest.raises(TypeError):
        observable()


def test_class_access_returns_descriptor() -> None:
    assert isinstance(_Settings.theme, observable)
