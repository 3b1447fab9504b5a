"""
Geometry core for CNC cut path preparation: chains from loose drawing
shapes, parts with their holes from chains, and kerf-compensated offsets.
"""

from .core.chains import Chain, ChainLink, Winding, detect_chains, normalize_chain
from .core.diagnostics import CutWarning, WarningType
from .core.exceptions import ChainCutError, ConfigurationError, DisconnectedChainError
from .core.offset import OffsetResult, offset_chain, offset_chains
from .core.parameters import Parameters
from .core.parts import Hole, Part, detect_parts
from .kernel.channel import Channel
from .tools.intersections import IntersectionPoint, IntersectionType, intersect
from .tools.shapes import Arc, Circle, Ellipse, Line, Polyline, Shape, Spline

APPLICATION_NAME = "chaincut"
APPLICATION_VERSION = "0.4.0"
