from .chain import handle
from .forwarder import forward

__all__ = ["forward", "handle"]
