# viewer.py

import logging
import numpy as np
import pygame

import constants

logger = logging.getLogger("atom_cloud")


def interpolate_color(norm_value: float):
    """
    Calculates a smooth color by linearly interpolating between keyframes.
    """
    # Find the two keyframes the value falls between.
    for i in range(len(constants.COLOR_GRADIENT_KEYFRAMES) - 1):
        pos1, color1 = constants.COLOR_GRADIENT_KEYFRAMES[i]
        pos2, color2 = constants.COLOR_GRADIENT_KEYFRAMES[i + 1]

        if pos1 <= norm_value <= pos2:
            local_t = (norm_value - pos1) / (pos2 - pos1)
            return tuple(int(c1 * (1 - local_t) + c2 * local_t) for c1, c2 in zip(color1, color2))

    # Outside the range (due to floating point error): use the last color.
    return constants.COLOR_GRADIENT_KEYFRAMES[-1][1]


class CloudViewer:
    """
    Live x-y projection of the cloud, coloured by particle speed.

    Data Contract:
    - Inputs: field_of_view (float) - Half-width of the displayed region (m).
    - Outputs: `draw` returns False once the window has been closed.
    - Side Effects: Owns the pygame display for its lifetime.
    - Invariants: Only reads the particle store; never modifies it.
    """
    def __init__(self, field_of_view: float):
        pygame.init()
        self.screen = pygame.display.set_mode((constants.WIDTH, constants.HEIGHT))
        pygame.display.set_caption(constants.TITLE)
        self.clock = pygame.time.Clock()
        self.trail_surface = pygame.Surface((constants.WIDTH, constants.HEIGHT), pygame.SRCALPHA)
        self.pixels_per_metre = min(constants.WIDTH, constants.HEIGHT) / (2.0 * field_of_view)
        logger.info(f"Viewer opened with a field of view of +/-{field_of_view:.2e} m.")

    def to_screen(self, positions: np.ndarray) -> np.ndarray:
        """Maps x-y positions (m) to pixel coordinates with the origin at the window centre."""
        centre = np.array([constants.WIDTH / 2, constants.HEIGHT / 2])
        pixels = positions[:, :2] * self.pixels_per_metre
        pixels[:, 1] *= -1
        return (pixels + centre).astype(int)

    def draw(self, store) -> bool:
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                return False

        self.trail_surface.fill(constants.TRAIL_EFFECT_COLOR)
        self.screen.blit(self.trail_surface, (0, 0))

        active = store.active
        pixels = self.to_screen(store.positions[active])
        speeds = np.linalg.norm(store.velocities[active], axis=1)
        # --- Sanitize speeds so a diverging run cannot crash the renderer ---
        speeds = np.nan_to_num(speeds, nan=0.0, posinf=constants.COLOR_MAX_SPEED)
        normalized = np.clip(speeds / constants.COLOR_MAX_SPEED, 0, 1)

        for (x, y), norm_speed in zip(pixels, normalized):
            if 0 <= x < constants.WIDTH and 0 <= y < constants.HEIGHT:
                pygame.draw.circle(self.screen, interpolate_color(norm_speed), (int(x), int(y)), constants.PARTICLE_RADIUS)

        pygame.display.flip()
        self.clock.tick(constants.FPS)
        return True

    def close(self):
        pygame.quit()
