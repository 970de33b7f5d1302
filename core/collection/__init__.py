"""Collection module — labelled samples and the dataset file format."""

from core.collection.collector import SampleCollector

__all__ = ["SampleCollector"]
