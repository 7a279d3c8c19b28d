"""
Dragonflow - Rule engine for a two-player elemental dragon card game

A deterministic, snapshot-driven engine. Each peer runs the same rules and
the acting peer ships the full resulting state to the other. Provides:
- State management and action validation
- The harmonization cascade with its player choices
- Win detection and turn lifecycle
- Legal action generation
"""

__version__ = "0.1.0"
