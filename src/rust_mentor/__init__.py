"""
Rust Mentor.

A chat-driven tutor that walks a learner through a Rust curriculum, quizzes each
chapter and keeps markdown artifacts of finished sessions, with pluggable LLM
providers.
"""

from .config.loader import load_settings

__all__ = ["load_settings"]
