"""Utility functions for ragfs."""

from ragfs.utils.files import decode_text, detect_binary, guess_mime_type, is_textual_mime_type

__all__ = ["decode_text", "detect_binary", "guess_mime_type", "is_textual_mime_type"]
