"""HTTP surface for the flashcard pipeline."""
