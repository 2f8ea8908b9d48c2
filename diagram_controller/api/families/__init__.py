"""
Family configurations, in route registration order.
"""

from . import erd, modeling, uml, visual

ALL_FAMILIES = (*uml.FAMILIES, *modeling.FAMILIES, *erd.FAMILIES, *visual.FAMILIES)

__all__ = ["ALL_FAMILIES", "erd", "modeling", "uml", "visual"]
