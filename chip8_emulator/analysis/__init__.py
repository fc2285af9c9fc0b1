"""
Analysis tools for interpreter state traces.
"""
from .state_recorder import StateRecorder
