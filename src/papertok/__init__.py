"""PaperTok - ranked arXiv feed with AI paper summaries."""

__version__ = "0.1.0"
