from .clicks import ClickAPI
from .links import LinkAPI
from .transport import Transport

__all__ = ["ClickAPI", "LinkAPI", "Transport"]
