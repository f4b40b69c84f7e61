"""
*polytran*

Reordering implicit upwind transport of water saturation and polymer
concentration on unstructured meshes.
"""

from .errors import *  # noqa
from .types import *  # noqa
from .config import *  # noqa
from .roots import *  # noqa
from .polymer import *  # noqa
from .relperm import *  # noqa
from .closures import *  # noqa
from .mesh import *  # noqa
from .flux import *  # noqa
from .residuals import *  # noqa
from .strategies import *  # noqa
from .ordering import *  # noqa
from .transport import *  # noqa

__version__ = "0.1.0"
