"""CodeRecall - daily spaced-repetition flashcards generated from GitHub commit history"""

from __future__ import annotations

__version__ = "1.0.0"
