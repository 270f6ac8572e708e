"""Daily flashcard pipeline, content selection, persistence, and regeneration quota."""
