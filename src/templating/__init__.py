"""Go-style template rendering for provider URL templates."""

from .render import FUNCS, render

__all__ = ["FUNCS", "render"]
