"""Game bias domain exports"""

from .models import BiasSnapshot, Outcome
from .service import GameBiasService

__all__ = ["BiasSnapshot", "GameBiasService", "Outcome"]
