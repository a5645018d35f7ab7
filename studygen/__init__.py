"""studygen - chunked, multi-pass quiz and flashcard generation."""

__version__ = "0.3.0"
