"""Intelligent Driver Model (IDM) for car-following."""

from __future__ import annotations
from typing import Optional
import math

from lattice_drive.config.global_config import IDMConfig


class IntelligentDriverModel:
    """Stateless IDM acceleration law.

    Without a lead vehicle only the free road term applies, so the
    acceleration is zero exactly at the policy speed.

    Args:
        config: IDM parameters, defaults to ``IDMConfig()``.
    """

    def __init__(self, config: Optional[IDMConfig] = None):
        self.config = config if config is not None else IDMConfig()
        if self.config.max_acceleration <= 0.0 or self.config.comfortable_deceleration <= 0.0:
            raise ValueError("IDM max_acceleration and comfortable_deceleration must be positive")

    def desired_gap(self, speed: float, speed_difference: float) -> float:
        """Desired gap s* for the given speed and approach rate."""
        cfg = self.config
        dynamic = speed * cfg.desired_time_gap + speed * speed_difference / (
            2.0 * math.sqrt(cfg.max_acceleration * cfg.comfortable_deceleration))
        return cfg.minimum_gap + max(0.0, dynamic)

    def acceleration(self,
                     speed: float,
                     policy_speed: float,
                     lead_speed: Optional[float] = None,
                     gap: Optional[float] = None) -> float:
        """Longitudinal acceleration.

        Args:
            speed: Current speed (m/s).
            policy_speed: Desired speed (m/s).
            lead_speed: Speed of the lead vehicle, None on a free road.
            gap: Distance to the lead vehicle (m), required with ``lead_speed``.

        Returns:
            Acceleration clipped to ``[-max_braking, max_acceleration]`` (m/s^2).

        Raises:
            ValueError: If the policy speed is (near) zero or only one of
                ``lead_speed`` and ``gap`` is given.
        """
        cfg = self.config
        if policy_speed < cfg.min_policy_speed:
            raise ValueError(
                f"IDM requires a positive policy speed, got {policy_speed} "
                f"(minimum {cfg.min_policy_speed})")
        if (lead_speed is None) != (gap is None):
            raise ValueError("lead_speed and gap must be given together")

        speed = max(speed, 0.0)
        free_road = 1.0 - (speed / policy_speed) ** cfg.acceleration_exponent
        interaction = 0.0
        if lead_speed is not None:
            gap = max(gap, cfg.min_gap_floor)
            interaction = (self.desired_gap(speed, speed - lead_speed) / gap) ** 2

        accel = cfg.max_acceleration * (free_road - interaction)
        return min(max(accel, -cfg.max_braking), cfg.max_acceleration)
