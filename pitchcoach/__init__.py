"""
PitchCoach: rehearse a sales pitch against a simulated AI client.

Speak to a client persona, hear its synthesized replies, and get a scored
report with advice at the end of the session.
"""

__version__ = "1.0.0"

# Main entry points
from .simulation.orchestrator import ConversationOrchestrator
from .simulation.models import Message, Scenario, AnalysisResult

__all__ = ["ConversationOrchestrator", "Message", "Scenario", "AnalysisResult"]
