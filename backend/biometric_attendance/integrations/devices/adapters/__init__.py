from .zkteco import ZKTecoAdapter
from .hikvision import HikvisionAdapter
from .suprema import SupremaAdapter
from .generic import GenericAdapter

__all__ = [
    "ZKTecoAdapter",
    "HikvisionAdapter",
    "SupremaAdapter",
    "GenericAdapter",
]
