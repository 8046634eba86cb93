# main.py

import logging

import numpy as np
import pygame

import constants
import logger_setup
from config import load_config
from controller import SimulationController
from observer_modes import ObserverMode
from renderer import Renderer

# Get the application's dedicated logger
logger = logging.getLogger(logger_setup.LOGGER_NAME)

# Number keys 1-8 select observers in declaration order.
MODE_KEYS = {getattr(pygame, f'K_{i + 1}'): mode for i, mode in enumerate(ObserverMode)}

POPULATION_STEP = 25


def frame_clock() -> float:
    """Seconds since pygame.init(). The controller and the host loop share this clock."""
    return pygame.time.get_ticks() / 1000.0


def handle_key(controller: SimulationController, key: int) -> bool:
    """
    Applies one keyboard shortcut to the controller.
    Returns False when the user asked to quit.
    """
    if key == pygame.K_ESCAPE:
        return False
    if key == pygame.K_SPACE:
        playing = controller.toggle_play()
        logger.info("Playing." if playing else "Paused.")
    elif key in MODE_KEYS:
        controller.set_observer(MODE_KEYS[key])
    elif key == pygame.K_h:
        controller.add_heat()
    elif key == pygame.K_c:
        controller.remove_heat()
    elif key == pygame.K_UP:
        controller.set_population(controller.config.population_size + POPULATION_STEP)
    elif key == pygame.K_DOWN:
        controller.set_population(max(1, controller.config.population_size - POPULATION_STEP))
    elif key == pygame.K_RIGHT:
        controller.set_speed(controller.config.evolution_speed * 1.5)
    elif key == pygame.K_LEFT:
        controller.set_speed(controller.config.evolution_speed / 1.5)
    elif key == pygame.K_r:
        controller.create()
    return True


def run_simulation_loop(controller: SimulationController, clock: pygame.time.Clock):
    """
    The host frame loop. pygame's clock paces the ticks at the display rate;
    the controller itself never schedules anything in this host.
    """
    controller.start()
    while controller.running:
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                controller.stop()
            elif event.type == pygame.KEYDOWN and not handle_key(controller, event.key):
                controller.stop()

        if not controller.running:
            break

        controller.tick()
        pygame.display.flip()
        clock.tick(constants.FPS)


def main(config_path='config.json'):
    """
    Main function to initialize and run the observer simulation.
    """
    # --- Setup ---
    logger_setup.setup_logging(config_path)
    raw_config, sim_config = load_config(config_path)

    logger.info("Application starting...")
    logger.info(f"Loaded configuration: {sim_config}")

    # Initialize the master random number generator (RNG)
    rng = np.random.default_rng(raw_config['master_seed'])
    logger.info(f"Master RNG initialized with seed: {raw_config['master_seed']}")

    # --- Initialization ---
    pygame.init()
    screen = pygame.display.set_mode((int(sim_config.width), int(sim_config.height)))
    pygame.display.set_caption(constants.TITLE)
    clock = pygame.time.Clock()

    renderer = Renderer(screen)
    controller = SimulationController(sim_config, rng=rng, on_render=renderer.draw, clock=frame_clock)
    controller.play()

    run_simulation_loop(controller, clock)

    logger.info("Application shutting down.")
    pygame.quit()


if __name__ == "__main__":
    main()
