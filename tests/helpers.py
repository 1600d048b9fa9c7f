import numpy as np

GREEN = (0, 255, 0)
BLUE = (0, 0, 255)


def solid(height, width, color) -> np.ndarray:
    pixels = np.zeros((height, width, 3), dtype=np.uint8)
    pixels[:, :] = color
    return pixels
