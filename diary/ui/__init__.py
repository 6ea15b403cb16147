"""Terminal front-ends."""

from .console import ConsoleUI
from .modern import ModernUI

__all__ = ["ConsoleUI", "ModernUI"]
