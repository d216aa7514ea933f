"""Reference backend: simulated client replies and pitch analysis over HTTP."""

from .app import create_app
from .engine import ClientSimulator, PitchAnalyzer, AnalysisRejected
from .prompts import CoachPrompts

__all__ = ["create_app", "ClientSimulator", "PitchAnalyzer", "AnalysisRejected", "CoachPrompts"]
