"""Shared interface for per-frame effects, the no-op stand-in and guarded helpers."""

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


MAX_SPEED = 350.0


def speed_factor(speed):
    """Speed mapped to [0, 1] against MAX_SPEED"""
    return min(max(speed / MAX_SPEED, 0.0), 1.0)


class Effect(ABC):
    """Capabilities the host render loop relies on"""

    @abstractmethod
    def set_car_type(self, car_type):
        pass

    @abstractmethod
    def set_speed(self, speed):
        pass

    @abstractmethod
    def set_visible(self, visible):
        pass

    @abstractmethod
    def set_wing_stall(self, stalled):
        pass

    @abstractmethod
    def update(self, dt, t):
        pass

    @abstractmethod
    def dispose(self):
        pass

    def opacities(self):
        return {}


class EffectStub(Effect):
    """Stand-in used when an effect fails to construct, so the frame loop keeps running"""

    def set_car_type(self, car_type):
        pass

    def set_speed(self, speed):
        pass

    def set_visible(self, visible):
        pass

    def set_wing_stall(self, stalled):
        pass

    def update(self, dt, t):
        pass

    def dispose(self):
        pass


def create_effect(factory, host_group, name=None, **kwargs):
    """
    Build an effect, degrading to an EffectStub if construction fails.

    Parameters
    ----------
    factory : callable
        Effect class or factory taking (host_group, **kwargs)
    host_group : scene_graph.Group
        Container the effect attaches to
    name : str, optional
        Label used in the log message
    """
    label = name or getattr(factory, '__name__', repr(factory))
    try:
        effect = factory(host_group, **kwargs)
    except Exception:
        logger.exception("[%s] constructor failed, using stub", label)
        return EffectStub()
    logger.info("[%s] constructed", label)
    return effect


def update_effects(effects, dt, t):
    """Advance every effect by one frame; one failing effect never stops the others"""
    for effect in effects:
        try:
            effect.update(dt, t)
        except Exception:
            logger.exception("[%s.update] failed", type(effect).__name__)
