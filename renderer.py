# renderer.py

import math

import pygame

import constants
from observer_modes import ObserverMode
from telemetry import format_telemetry


def _rgb(hex_color: str):
    return pygame.Color(hex_color)


def _conscious_color(prediction_error: float):
    intensity = min(prediction_error / 3.0, 1.0)
    if intensity > 0.5:
        return _rgb(constants.ERROR_HIGH_COLOR)
    if intensity > 0.2:
        return _rgb(constants.ERROR_MEDIUM_COLOR)
    return _rgb(constants.ERROR_LOW_COLOR)


class Renderer:
    """
    Draws a controller's read interface onto a pygame surface.
    Consumes particles, connections and telemetry; never mutates them.
    """
    def __init__(self, screen: pygame.Surface):
        self.screen = screen
        self.font = pygame.font.SysFont('monospace', 14)

    def draw(self, controller):
        descriptor = controller.descriptor
        store = controller.store
        self.screen.fill(constants.BACKGROUND)

        self._draw_connections(controller.connections, store, descriptor)

        if descriptor.show_ghosts:
            self._draw_ghosts(store, descriptor, controller.frame_count)
        if descriptor.show_trails and store.trail_length > 1:
            self._draw_trails(store, descriptor)

        self._draw_particles(store, descriptor)
        self._draw_hud(controller)

    def _draw_connections(self, connections, store, descriptor):
        color = _rgb(descriptor.color)
        for edge in connections:
            # Social observers only see links inside a cluster.
            if descriptor.mode is ObserverMode.SOCIAL and store.clusters[edge.source] != store.clusters[edge.target]:
                continue
            width = 1
            if descriptor.mode is ObserverMode.AI:
                width = max(1, int(round(0.5 + edge.strength * 5.5)))
            start = store.positions[edge.source]
            end = store.positions[edge.target]
            pygame.draw.line(self.screen, color, (int(start[0]), int(start[1])), (int(end[0]), int(end[1])), width)

    def _draw_ghosts(self, store, descriptor, frame):
        color = _rgb(descriptor.color)
        for x, y in store.positions:
            for i in range(2):
                angle = (i / 2) * math.pi * 2 + frame * 0.02
                radius = 20 + math.sin(frame * 0.05 + i) * 12
                gx = x + math.cos(angle) * radius
                gy = y + math.sin(angle) * radius
                pygame.draw.circle(self.screen, color, (int(gx), int(gy)), descriptor.particle_size, 1)

    def _draw_trails(self, store, descriptor):
        color = _rgb(descriptor.color)
        for p_idx in range(store.num_particles):
            points = [(int(x), int(y)) for x, y in store.trail(p_idx)]
            pygame.draw.lines(self.screen, color, False, points, 2)

    def _draw_particles(self, store, descriptor):
        for p_idx in range(store.num_particles):
            if descriptor.mode is ObserverMode.CONSCIOUS:
                color = _conscious_color(store.prediction_errors[p_idx])
            else:
                color = _rgb(store.color_of(p_idx))
            x, y = store.positions[p_idx]
            pygame.draw.circle(self.screen, color, (int(x), int(y)), descriptor.particle_size)
            if descriptor.mode is ObserverMode.SOCIAL:
                pygame.draw.circle(self.screen, constants.WHITE, (int(x), int(y)), descriptor.particle_size, 1)

    def _draw_hud(self, controller):
        lines = [controller.descriptor.name, 'PLAYING' if controller.is_playing else 'PAUSED']
        lines += format_telemetry(controller.get_telemetry())
        for row, text in enumerate(lines):
            surface = self.font.render(text, True, constants.HUD_TEXT)
            self.screen.blit(surface, (10, 10 + row * 16))
