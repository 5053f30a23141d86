"""
The entire public API is available at root level::

    from jamfkit import Connection, Building, APIError, Pager, ...

The default connection wrapper is kept separate, in :mod:`jamfkit.default`.
"""

from . import clients, http, validate, timestamp
from .__about__ import __version__
from .classic import *  # noqa
from .clients import *  # noqa
from .configuration import *  # noqa
from .connection import *  # noqa
from .errors import *  # noqa
from .http import *  # noqa
from .log import *  # noqa
from .model import *  # noqa
from .objects import *  # noqa
from .pagination import *  # noqa
from .query import *  # noqa
from .resources import *  # noqa
from .schema import *  # noqa
from .token import *  # noqa

__all__ = ["clients", "http", "validate", "timestamp", "__version__"]
