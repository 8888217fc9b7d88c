from .parsers import extract_text, guess_mime_type

__all__ = ["extract_text", "guess_mime_type"]
