"""Local persistence for trained classifiers.

Layout under ``models_dir``:
    <name>.pt      # checkpoint: architecture + state_dict (+ label_names)
    labels.json    # key-value side-car: {"<name>-labels": "[\"A\", \"B\"]"}

The checkpoint and its Label Set are always written together. A network
whose output size disagrees with its Label Set would silently map
probabilities to the wrong letters, so every read re-checks the pairing.
"""

from __future__ import annotations

import json
import shutil
from pathlib import Path
from typing import Any

import torch
from loguru import logger

from core.classifier.model import DEFAULT_HIDDEN_DIMS, SignClassifierNet
from core.errors import ModelFormatError
from core.types import FEATURE_DIM

FORMAT_VERSION = 1
LABELS_FILE = "labels.json"


class ModelStore:
    """Save/load classifiers by name.

    Usage:
        >>> store = ModelStore("models")
        >>> store.save("libras-model", model, ["A", "B"])
        >>> model, labels = store.load("libras-model")
    """

    def __init__(self, models_dir: str | Path) -> None:
        self._dir = Path(models_dir)

    @property
    def models_dir(self) -> Path:
        return self._dir

    def model_path(self, name: str) -> Path:
        return self._dir / f"{name}.pt"

    def exists(self, name: str) -> bool:
        return self.model_path(name).exists()

    # ----- Classifier slot -----

    def save(self, name: str, model: SignClassifierNet, label_names: list[str]) -> Path:
        """Persist a classifier and its Label Set under ``name``."""
        self.check_pairing(model.num_classes, label_names)
        self._dir.mkdir(parents=True, exist_ok=True)

        path = self.model_path(name)
        tmp = path.with_suffix(".pt.tmp")
        backup = path.with_suffix(".pt.bak")
        torch.save(self.to_checkpoint(model, label_names), tmp)

        had_previous = path.exists()
        if had_previous:
            shutil.copyfile(path, backup)
        tmp.replace(path)
        try:
            self.save_labels(name, label_names)
        except OSError:
            # Put the previous pair back so checkpoint and side-car agree
            if had_previous:
                backup.replace(path)
            else:
                path.unlink(missing_ok=True)
            logger.error(f"Label side-car write failed, rolled back classifier '{name}'")
            raise
        backup.unlink(missing_ok=True)

        logger.info(f"Saved classifier '{name}' to {path} ({len(label_names)} classes)")
        return path

    def load(self, name: str) -> tuple[SignClassifierNet, list[str]]:
        """Load the classifier stored under ``name``.

        The Label Set embedded in the checkpoint wins; the side-car is only
        consulted for checkpoints that carry none.

        Raises:
            FileNotFoundError: If nothing is stored under ``name``.
            ModelFormatError: If the stored files are inconsistent.
        """
        path = self.model_path(name)
        if not path.exists():
            raise FileNotFoundError(f"No stored classifier: {path}")
        model, labels = self.read_checkpoint(path)
        if labels is None:
            labels = self.load_labels(name)
            if labels is None:
                raise ModelFormatError(f"No Label Set stored for classifier '{name}'")
            self.check_pairing(model.num_classes, labels)
        return model, labels

    def export_copy(self, name: str, dest_dir: str | Path) -> Path:
        """Copy the stored checkpoint (with embedded labels) for download."""
        dest_dir = Path(dest_dir)
        dest_dir.mkdir(parents=True, exist_ok=True)
        dest = dest_dir / f"{name}.pt"
        shutil.copyfile(self.model_path(name), dest)
        logger.info(f"Exported classifier copy: {dest}")
        return dest

    # ----- Label side-car -----

    def save_labels(self, name: str, label_names: list[str]) -> None:
        store = self._read_kv()
        store[f"{name}-labels"] = json.dumps(list(label_names))
        self._dir.mkdir(parents=True, exist_ok=True)
        tmp = self._dir / f"{LABELS_FILE}.tmp"
        tmp.write_text(json.dumps(store, indent=2))
        tmp.replace(self._dir / LABELS_FILE)

    def load_labels(self, name: str) -> list[str] | None:
        """Side-car Label Set for ``name``, or None if none is stored.

        Raises:
            ModelFormatError: The stored entry is not a JSON list of strings.
        """
        raw = self._read_kv().get(f"{name}-labels")
        if raw is None:
            return None
        try:
            labels = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            raise ModelFormatError(f"Corrupt Label Set for classifier '{name}': {e}") from e
        if not isinstance(labels, list) or not all(isinstance(l, str) for l in labels):
            raise ModelFormatError(f"Label Set for classifier '{name}' is not a list of strings")
        return labels

    def _read_kv(self) -> dict[str, str]:
        path = self._dir / LABELS_FILE
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text())
        except json.JSONDecodeError:
            logger.warning(f"Corrupt label store {path}, ignoring")
            return {}
        return data if isinstance(data, dict) else {}

    # ----- Checkpoint format -----

    @staticmethod
    def to_checkpoint(model: SignClassifierNet, label_names: list[str]) -> dict[str, Any]:
        return {
            "format_version": FORMAT_VERSION,
            "input_dim": model.input_dim,
            "hidden_dims": list(model.hidden_dims),
            "num_classes": model.num_classes,
            "state_dict": model.state_dict(),
            "label_names": list(label_names),
        }

    @classmethod
    def read_checkpoint(
        cls,
        path: str | Path,
        label_names: list[str] | None = None,
    ) -> tuple[SignClassifierNet, list[str] | None]:
        """Build a classifier from a checkpoint file, validating its structure.

        Args:
            path: Checkpoint file.
            label_names: Labels to pair with the network. Falls back to the
                labels embedded in the checkpoint.

        Returns:
            The model (in eval mode) and its Label Set, if one is known.

        Raises:
            ModelFormatError: Unreadable file, wrong structure, or a Label Set
                that does not match the output layer.
        """
        path = Path(path)
        if not path.exists():
            raise ModelFormatError(f"Model file not found: {path}")

        try:
            ckpt = torch.load(str(path), map_location="cpu", weights_only=True)
        except Exception as e:
            raise ModelFormatError(f"Cannot read model file {path.name}: {e}") from e

        if not isinstance(ckpt, dict) or "state_dict" not in ckpt or "num_classes" not in ckpt:
            raise ModelFormatError(f"{path.name} is not a classifier checkpoint")

        input_dim = int(ckpt.get("input_dim", FEATURE_DIM))
        if input_dim != FEATURE_DIM:
            raise ModelFormatError(f"Expected input dim {FEATURE_DIM}, checkpoint has {input_dim}")

        try:
            model = SignClassifierNet(
                num_classes=int(ckpt["num_classes"]),
                input_dim=input_dim,
                hidden_dims=tuple(ckpt.get("hidden_dims", DEFAULT_HIDDEN_DIMS)),
            )
            model.load_state_dict(ckpt["state_dict"])
        except (RuntimeError, TypeError, ValueError) as e:
            raise ModelFormatError(f"Invalid weights in {path.name}: {e}") from e
        model.eval()

        labels = label_names if label_names is not None else ckpt.get("label_names")
        if labels is not None:
            labels = [str(l) for l in labels]
            cls.check_pairing(model.num_classes, labels)
        return model, labels

    @staticmethod
    def check_pairing(num_classes: int, label_names: list[str]) -> None:
        if len(label_names) != num_classes:
            raise ModelFormatError(
                f"Label Set has {len(label_names)} entries but the classifier "
                f"outputs {num_classes} classes"
            )
