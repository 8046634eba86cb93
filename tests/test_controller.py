"""Tests for controller.py."""

import numpy as np
import pytest

from config import SimulationConfig
from controller import SimulationController
from observer_modes import ConfigurationError, ObserverMode


class FakeScheduler:
    """Records frame requests instead of waiting for a display refresh."""

    def __init__(self):
        self.requests = []
        self.cancelled = []

    def request(self, callback):
        self.requests.append(callback)
        return len(self.requests)

    def cancel(self, handle):
        self.cancelled.append(handle)


@pytest.fixture
def config():
    return SimulationConfig(population_size=60, observer_type=ObserverMode.QUANTUM,
                            width=800.0, height=600.0)


@pytest.fixture
def controller(config, rng):
    return SimulationController(config, rng=rng)


class TestScheduling:
    """Tests for the Stopped/Running state machine."""

    def test_start_is_idempotent(self, config, rng):
        scheduler = FakeScheduler()
        controller = SimulationController(config, rng=rng, scheduler=scheduler.request,
                                          cancel=scheduler.cancel)
        controller.start()
        controller.start()

        assert controller.running
        assert len(scheduler.requests) == 1

    def test_frame_ticks_and_reschedules(self, config, rng):
        scheduler = FakeScheduler()
        controller = SimulationController(config, rng=rng, scheduler=scheduler.request,
                                          cancel=scheduler.cancel)
        controller.start()
        scheduler.requests[-1](0.0)

        assert controller.frame_count == 1
        assert len(scheduler.requests) == 2

    def test_stop_cancels_pending_frame(self, config, rng):
        scheduler = FakeScheduler()
        controller = SimulationController(config, rng=rng, scheduler=scheduler.request,
                                          cancel=scheduler.cancel)
        controller.start()
        controller.stop()

        assert not controller.running
        assert scheduler.cancelled == [1]

        # A frame delivered after stop does nothing.
        scheduler.requests[0](0.0)
        assert controller.frame_count == 0

    def test_tick_without_scheduler(self, controller):
        for _ in range(5):
            controller.tick()
        assert controller.frame_count == 5
        assert not controller.running


class TestTick:
    """Tests for per-tick ordering and cadence."""

    def test_telemetry_on_first_and_every_thirtieth_tick(self, controller):
        controller.tick()
        first = controller.get_telemetry()
        assert first.particle_count == 60
        assert len(controller.history) == 1

        for _ in range(29):
            controller.tick()
        assert len(controller.history) == 1
        assert controller.history.latest()[1] is first

        controller.tick()
        assert len(controller.history) == 2
        assert [frame for frame, _ in controller.history.series('entropy')] == [0, 30]

    def test_telemetry_disabled(self, config, rng):
        controller = SimulationController(config._replace(enable_telemetry=False), rng=rng)
        controller.tick()
        assert controller.get_telemetry().particle_count == 0
        assert len(controller.history) == 0

    def test_render_callback_sees_fresh_connections(self, controller):
        seen = []
        controller.on_render = lambda c: seen.append(list(c.connections))
        controller.tick()
        controller.tick()
        assert len(seen) == 2
        assert seen[-1] == controller.connections

    def test_frame_rate_rolling_average(self, config, rng):
        controller = SimulationController(config, rng=rng, clock=lambda: 0.0)
        controller.start()
        for k in range(1, 12):
            controller.tick(now=0.02 * k)

        assert controller.fps == 50
        assert controller.get_telemetry().fps == 50

    def test_frame_rate_from_injected_clock(self, config, rng):
        # start() and every tick() read the same clock; here it runs at 60 Hz
        # and starts well away from zero.
        times = iter(500.0 + k / 60 for k in range(100))
        controller = SimulationController(config, rng=rng, clock=lambda: next(times))
        controller.start()
        for _ in range(11):
            controller.tick()

        assert controller.frame_count == 11
        assert controller.fps == 60
        assert controller.history.latest()[1].fps == 60

    def test_paused_controller_still_moves(self, controller):
        controller.pause()
        before = controller.store.positions.copy()
        velocities = controller.store.velocities.copy()
        controller.tick()
        # No walls are within one unit of velocity for most particles.
        moved = np.any(controller.store.positions != before, axis=1)
        assert moved.sum() > 50
        np.testing.assert_array_equal(np.abs(controller.store.velocities), np.abs(velocities))


class TestControls:
    """Tests for the public control API."""

    def test_play_pause_toggle(self, controller):
        assert not controller.is_playing
        controller.play()
        assert controller.is_playing
        controller.pause()
        assert not controller.is_playing
        assert controller.toggle_play() is True
        assert controller.toggle_play() is False

    def test_play_does_not_start_scheduling(self, controller):
        controller.play()
        assert not controller.running

    def test_heat_round_trip(self, controller):
        before = controller.store.velocities.copy()
        controller.add_heat(1.3)
        controller.remove_heat(1 / 1.3)
        np.testing.assert_allclose(controller.store.velocities, before)

    def test_default_heat_factors(self, controller):
        before = controller.store.velocities.copy()
        controller.add_heat()
        np.testing.assert_allclose(controller.store.velocities, before * 1.3)
        controller.remove_heat()
        np.testing.assert_allclose(controller.store.velocities, before * 1.3 * 0.7)

    def test_non_positive_heat_factor_rejected(self, controller):
        with pytest.raises(ValueError):
            controller.add_heat(0)

    def test_leaving_classical_clears_trails(self, controller):
        controller.set_observer('classical')
        for _ in range(5):
            controller.tick()
        assert controller.store.trail_length == 5

        controller.set_observer(ObserverMode.AI)
        assert all(len(controller.store.trail(i)) == 0 for i in range(60))
        assert all(p.trail is None for p in controller.particles())

        controller.set_observer('classical')
        assert all(p.trail == [] for p in controller.particles())

    def test_set_observer_keeps_state(self, controller):
        positions = controller.store.positions.copy()
        velocities = controller.store.velocities.copy()
        store = controller.store

        controller.set_observer('social')

        assert controller.store is store
        np.testing.assert_array_equal(controller.store.positions, positions)
        np.testing.assert_array_equal(controller.store.velocities, velocities)
        assert controller.store.clusters.tolist() == [i % 5 for i in range(60)]
        assert controller.config.observer_type is ObserverMode.SOCIAL

    def test_unknown_observer_rejected(self, controller):
        with pytest.raises(ConfigurationError):
            controller.set_observer('omniscient')
        assert controller.descriptor.mode is ObserverMode.QUANTUM

    def test_set_population_rebuilds(self, controller):
        controller.set_population(25)
        particles = controller.particles()
        assert len(particles) == 25
        assert [p.id for p in particles] == list(range(25))
        assert controller.config.population_size == 25

    def test_set_population_zero(self, controller):
        controller.set_population(0)
        controller.tick()
        assert controller.connections == []
        assert controller.get_telemetry().particle_count == 0

    def test_negative_population_rejected(self, controller):
        with pytest.raises(ConfigurationError):
            controller.set_population(-3)

    def test_create_with_mode(self, controller):
        controller.create(40, 'thermodynamic')
        assert len(controller.store) == 40
        assert controller.descriptor.mode is ObserverMode.THERMODYNAMIC

    def test_set_speed_replaces_config(self, controller):
        original = controller.config
        controller.set_speed(2.5)
        assert controller.config.evolution_speed == 2.5
        assert original.evolution_speed == 1.0

    def test_set_budget_clamped(self, controller):
        controller.set_budget(140)
        assert controller.config.computational_budget == 100.0
        controller.set_budget(-5)
        assert controller.config.computational_budget == 0.0

    def test_get_telemetry_not_recomputed(self, controller):
        controller.tick()
        controller.add_heat(5.0)
        assert controller.get_telemetry() is controller.get_telemetry()
        assert controller.get_telemetry().kinetic_energy <= 1.0

    @pytest.mark.parametrize("mode", list(ObserverMode))
    def test_every_mode_runs(self, controller, mode):
        controller.set_observer(mode)
        controller.play()
        for _ in range(31):
            controller.tick()
        assert controller.get_telemetry().particle_count == 60
        assert isinstance(controller.get_observer_metrics(), dict)
