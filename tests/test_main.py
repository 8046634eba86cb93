"""Tests for the pygame host loop in main.py."""

from types import SimpleNamespace

import pygame
import pytest

import main
from config import SimulationConfig
from controller import SimulationController
from observer_modes import ObserverMode


class FakePygameClock:
    """Stands in for pygame.time.Clock; each tick advances pygame's ticks by 20 ms."""

    def __init__(self, ticks):
        self.ticks = ticks

    def tick(self, framerate):
        self.ticks['ms'] += 20


@pytest.fixture
def host(monkeypatch):
    # pygame.init() ran long before the loop starts.
    ticks = {'ms': 7000}
    frames = {'count': 0}

    def events():
        frames['count'] += 1
        if frames['count'] > 12:
            return [SimpleNamespace(type=pygame.QUIT)]
        return []

    monkeypatch.setattr(pygame.time, 'get_ticks', lambda: ticks['ms'])
    monkeypatch.setattr(pygame.event, 'get', events)
    monkeypatch.setattr(pygame.display, 'flip', lambda: None)
    return FakePygameClock(ticks)


class TestRunSimulationLoop:

    def test_frame_rate_measured_on_pygame_clock(self, host, rng):
        config = SimulationConfig(population_size=30, observer_type=ObserverMode.QUANTUM,
                                  width=800.0, height=600.0)
        controller = SimulationController(config, rng=rng, clock=main.frame_clock)

        main.run_simulation_loop(controller, host)

        assert not controller.running
        assert controller.frame_count == 12
        # Ten 20 ms frames and a zero first delta: 1000 / (200 / 11) = 55.
        assert controller.fps == 55
        assert controller.get_telemetry().fps == 55

    def test_escape_quits(self):
        controller = SimpleNamespace()
        assert main.handle_key(controller, pygame.K_ESCAPE) is False
