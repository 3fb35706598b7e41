from __future__ import annotations

import math

from pygame.math import Vector3


def _safe_normalize(vector: Vector3) -> Vector3:
    magnitude_sq = vector.length_squared()
    if magnitude_sq < 1e-18:
        return Vector3()
    inv = 1.0 / math.sqrt(magnitude_sq)
    return Vector3(vector.x * inv, vector.y * inv, vector.z * inv)


def _set_length(vector: Vector3, length: float) -> Vector3:
    magnitude_sq = vector.length_squared()
    if magnitude_sq < 1e-18:
        return Vector3()
    scale = length / math.sqrt(magnitude_sq)
    return Vector3(vector.x * scale, vector.y * scale, vector.z * scale)


def _clamp_length(vector: Vector3, max_length: float) -> Vector3:
    if max_length <= 0:
        return Vector3()
    magnitude_sq = vector.length_squared()
    if magnitude_sq <= max_length * max_length:
        return Vector3(vector)
    return _set_length(vector, max_length)


def _clamp_length_range(vector: Vector3, min_length: float, max_length: float) -> Vector3:
    # Lower bound wins when the range is inverted; a zero vector stays zero.
    magnitude_sq = vector.length_squared()
    if magnitude_sq < 1e-18:
        return Vector3()
    magnitude = math.sqrt(magnitude_sq)
    target = max(min_length, min(max_length, magnitude))
    if target == magnitude:
        return Vector3(vector)
    scale = target / magnitude
    return Vector3(vector.x * scale, vector.y * scale, vector.z * scale)


def _forward_from_velocity(vector: Vector3, threshold_sq: float = 1e-4) -> Vector3 | None:
    if vector.length_squared() <= threshold_sq:
        return None
    return _safe_normalize(vector)


def _clamp_value(value: float, min_value: float, max_value: float) -> float:
    return max(min_value, min(max_value, value))
