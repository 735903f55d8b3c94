"""
Agents module containing the interviewer agent.
"""

from mock_interviewer.agents.interviewer import DialogueGenerator

__all__ = [
    "DialogueGenerator",
]
