"""Pytest setup for getaway-game tests. Puts the game directory on sys.path before any game import."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))
