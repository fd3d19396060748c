"""AI layer: tracking, prediction, classification, feedback and target selection."""

from src.ai.classifier import BehaviorClassifier
from src.ai.predictor import Predictor
from src.ai.scenario import ScenarioManager
from src.ai.tracker import BehaviorTracker

__all__ = ["BehaviorClassifier", "BehaviorTracker", "Predictor", "ScenarioManager"]
