"""
IO module for interview interfaces.

Provides the text interface for conducting interviews.
"""

from mock_interviewer.io.text_interface import TextInterface, format_evaluation, render_history

__all__ = ["TextInterface", "format_evaluation", "render_history"]
