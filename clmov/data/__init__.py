from .state import MovieState, DescriptorEntry, MobileEntry, PictureEntry
from .tables import StateReconstructor

__all__ = [
    "MovieState", "DescriptorEntry", "MobileEntry", "PictureEntry",
    "StateReconstructor",
]
