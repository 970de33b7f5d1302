"""Classifier module — sign MLP, persistence and lifecycle management."""

from core.classifier.manager import ClassifierConfig, ClassifierManager
from core.classifier.model import SignClassifierNet
from core.classifier.store import ModelStore

__all__ = ["ClassifierConfig", "ClassifierManager", "ModelStore", "SignClassifierNet"]
