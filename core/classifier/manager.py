"""Classifier lifecycle: auto-load, train, load external, infer.

Exactly one classifier is live at a time. It is held together with its
Label Set in a single slot, so a reader always sees a consistent pair.
Replacements are built and validated off to the side and swapped in with
one reference assignment; until then the previous classifier keeps
serving inference.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
import torch
from loguru import logger

from core.classifier.model import SignClassifierNet
from core.classifier.store import ModelStore
from core.errors import ModelFormatError, ResourceUnavailableError, UserInputError
from core.types import FEATURE_DIM
from training.datasets.sample_dataset import SignSampleDataset
from training.trainers.train_classifier import SignTrainer, TrainConfig, TrainResult

EpochCallback = Callable[[int, int, dict[str, float]], None]


@dataclass
class ClassifierConfig:
    """Configuration for the classifier lifecycle.

    Attributes:
        models_dir: Directory of the local model store.
        model_name: Storage slot name for the live classifier.
        bundled_model_path: Pre-trained fallback used when nothing is stored.
        export_dir: Where a downloadable copy is written after training
            (None disables the copy).
        train: Training hyperparameters.
    """
    models_dir: str = "models"
    model_name: str = "libras-model"
    bundled_model_path: str | None = "assets/model/libras-model.pt"
    export_dir: str | None = "downloads"
    train: TrainConfig = field(default_factory=TrainConfig)


class ClassifierManager:
    """Owns the live sign classifier.

    Usage:
        >>> manager = ClassifierManager(ClassifierConfig(models_dir="models"))
        >>> manager.auto_load()
        >>> future = manager.train_async(collector.samples, collector.labels)
        >>> probs = manager.infer(features)   # aligned with manager.label_names
    """

    def __init__(
        self,
        config: ClassifierConfig | None = None,
        store: ModelStore | None = None,
    ) -> None:
        self._config = config or ClassifierConfig()
        self._store = store or ModelStore(self._config.models_dir)
        self._live: tuple[SignClassifierNet, list[str]] | None = None
        self._lock = threading.Lock()
        self._train_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="trainer")
        self._status = "Model: none"

    @property
    def config(self) -> ClassifierConfig:
        return self._config

    @property
    def store(self) -> ModelStore:
        return self._store

    @property
    def status(self) -> str:
        return self._status

    @property
    def is_loaded(self) -> bool:
        with self._lock:
            return self._live is not None

    @property
    def is_training(self) -> bool:
        return self._train_lock.locked()

    @property
    def label_names(self) -> list[str]:
        with self._lock:
            return list(self._live[1]) if self._live else []

    # ----- Loading -----

    def auto_load(self) -> bool:
        """Restore the stored classifier, else the bundled default.

        Never raises: a missing or broken model only updates ``status``.

        Returns:
            True if a classifier is now live.
        """
        name = self._config.model_name
        try:
            model, labels = self._store.load(name)
            self._swap(model, labels)
            self._set_status("Model loaded automatically (local storage)")
            return True
        except FileNotFoundError:
            logger.info(f"No stored classifier '{name}'")
        except (ModelFormatError, OSError) as e:
            logger.warning(f"Stored classifier '{name}' unusable: {e}")

        bundled = self._config.bundled_model_path
        if bundled and Path(bundled).exists():
            logger.info(f"Trying bundled base model: {bundled}")
            try:
                model, labels = ModelStore.read_checkpoint(bundled)
                if labels is None:
                    labels = self._store.load_labels(name)
                if labels is None:
                    raise ModelFormatError(f"No Label Set available for {bundled}")
                ModelStore.check_pairing(model.num_classes, labels)
                self._store.save(name, model, labels)
                self._swap(model, labels)
                self._set_status("Base model loaded (pre-trained)")
                return True
            except (ModelFormatError, OSError) as e:
                logger.error(f"Error loading bundled model: {e}")

        self._set_status("No model found. Train or load one manually.")
        return False

    def load_external(
        self,
        model_path: str | Path,
        labels_path: str | Path | None = None,
    ) -> list[str]:
        """Validate, persist and activate an externally supplied classifier.

        The Label Set comes from ``labels_path`` (a JSON list), else from the
        checkpoint itself, else from the stored side-car.

        Returns:
            The Label Set of the new classifier.

        Raises:
            ModelFormatError: On any structural problem. The live classifier
                is left untouched.
        """
        labels = self._read_labels_file(labels_path) if labels_path else None
        model, labels = ModelStore.read_checkpoint(model_path, labels)
        if labels is None:
            labels = self._store.load_labels(self._config.model_name)
            if labels is None:
                raise ModelFormatError("Model has no Label Set; supply a labels file")
            ModelStore.check_pairing(model.num_classes, labels)

        self._store.save(self._config.model_name, model, labels)
        self._swap(model, labels)
        self._set_status("Model loaded and saved locally")
        return labels

    @staticmethod
    def _read_labels_file(path: str | Path) -> list[str]:
        try:
            data = json.loads(Path(path).read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise ModelFormatError(f"Cannot read labels file {path}: {e}") from e
        if isinstance(data, dict):
            data = data.get("label_names")
        if not isinstance(data, list) or not data:
            raise ModelFormatError("Labels file must hold a non-empty JSON list")
        return [str(l) for l in data]

    # ----- Training -----

    def train(
        self,
        samples: Sequence[np.ndarray],
        labels: Sequence[str],
        on_epoch_end: EpochCallback | None = None,
    ) -> TrainResult:
        """Train a new classifier and swap it in on success.

        Raises:
            UserInputError: No samples, or a training run is already active.
            OSError: The trained classifier could not be saved. The previous
                classifier stays live.
        """
        self._check_samples(samples, labels)
        if not self._train_lock.acquire(blocking=False):
            raise UserInputError("Training already in progress")
        try:
            return self._run_training(list(samples), list(labels), on_epoch_end)
        finally:
            self._train_lock.release()

    def train_async(
        self,
        samples: Sequence[np.ndarray],
        labels: Sequence[str],
        on_epoch_end: EpochCallback | None = None,
    ) -> Future[TrainResult]:
        """Train on the background worker.

        Input is validated (and snapshotted) immediately; training errors
        surface through the returned future.
        """
        self._check_samples(samples, labels)
        if not self._train_lock.acquire(blocking=False):
            raise UserInputError("Training already in progress")

        samples, labels = list(samples), list(labels)

        def job() -> TrainResult:
            try:
                return self._run_training(samples, labels, on_epoch_end)
            finally:
                self._train_lock.release()

        try:
            return self._executor.submit(job)
        except RuntimeError:
            self._train_lock.release()
            raise

    def _run_training(
        self,
        samples: list[np.ndarray],
        labels: list[str],
        on_epoch_end: EpochCallback | None,
    ) -> TrainResult:
        self._set_status("Preparing data and initializing model...")
        dataset = SignSampleDataset(samples, labels)
        cfg = self._config.train

        def report(epoch: int, total: int, metrics: dict[str, float]) -> None:
            self._status = (
                f"Epoch {epoch}/{total} | Loss: {metrics['loss']:.3f} | "
                f"Acc: {metrics['accuracy']:.3f}"
            )
            if on_epoch_end:
                on_epoch_end(epoch, total, metrics)

        try:
            model = SignClassifierNet(num_classes=dataset.num_classes)
            self._set_status(f"Training model with {dataset.num_classes} classes...")
            result = SignTrainer(model, dataset, cfg, on_epoch_end=report).train()
        except Exception:
            logger.exception("Training failed")
            self._set_status("Training error. Previous model kept.")
            raise

        name = self._config.model_name
        try:
            self._store.save(name, model, dataset.label_names)
        except OSError as e:
            logger.error(f"Could not persist trained classifier: {e}")
            self._set_status("Could not save model. Previous model kept.")
            raise
        if self._config.export_dir:
            try:
                self._store.export_copy(name, self._config.export_dir)
            except OSError as e:
                logger.error(f"Could not export classifier copy: {e}")

        self._swap(model, dataset.label_names)
        self._set_status("Model trained and saved locally")
        return result

    @staticmethod
    def _check_samples(samples: Sequence[np.ndarray], labels: Sequence[str]) -> None:
        if len(samples) == 0:
            raise UserInputError("Collect samples of several letters before training.")
        if len(samples) != len(labels):
            raise UserInputError(f"Got {len(samples)} samples but {len(labels)} labels")

    # ----- Inference -----

    def infer(self, features: np.ndarray) -> np.ndarray:
        """Probability distribution aligned with ``label_names``.

        Raises:
            ResourceUnavailableError: No classifier is loaded.
            RuntimeError: Classifier output does not match its Label Set.
        """
        return self.predict(features)[0]

    def predict(self, features: np.ndarray) -> tuple[np.ndarray, list[str]]:
        """Like ``infer``, also returning the Label Set the output belongs to.

        Both come from the same classifier even if a swap happens meanwhile.
        """
        with self._lock:
            live = self._live
        if live is None or not live[1]:
            raise ResourceUnavailableError("No classifier loaded")
        model, labels = live

        x = torch.from_numpy(np.asarray(features, dtype=np.float32).reshape(1, FEATURE_DIM))
        probs = model.predict(x)["class_probs"][0].numpy().astype(np.float32)
        if probs.shape[0] != len(labels):
            raise RuntimeError(
                f"Classifier produced {probs.shape[0]} probabilities for {len(labels)} labels"
            )
        return probs, list(labels)

    # ----- Lifecycle -----

    def _swap(self, model: SignClassifierNet, labels: list[str]) -> None:
        model.eval()
        with self._lock:
            previous = self._live
            self._live = (model, list(labels))
        if previous is not None:
            logger.debug("Released previous classifier")
        logger.info(f"Classifier active | Labels: {labels}")

    def _set_status(self, text: str) -> None:
        self._status = text
        logger.info(text)

    def close(self) -> None:
        """Stop accepting training jobs and drop the live classifier."""
        self._executor.shutdown(wait=False)
        with self._lock:
            self._live = None
