"""Tests for core.classifier — model, store and lifecycle manager."""

from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path

import numpy as np
import pytest
import torch

from conftest import make_samples
from core.classifier.manager import ClassifierConfig, ClassifierManager
from core.classifier.model import SignClassifierNet
from core.classifier.store import ModelStore
from core.errors import ModelFormatError, ResourceUnavailableError, UserInputError
from training.datasets.sample_dataset import SignSampleDataset
from training.trainers.train_classifier import SignTrainer, TrainConfig


class TestSignClassifierNet:
    def test_forward_shape(self) -> None:
        model = SignClassifierNet(num_classes=5)
        out = model(torch.randn(4, 63))
        assert out["logits"].shape == (4, 5)

    def test_predict_probabilities(self) -> None:
        model = SignClassifierNet(num_classes=3)
        out = model.predict(torch.randn(2, 63))
        assert out["class_probs"].shape == (2, 3)
        torch.testing.assert_close(out["class_probs"].sum(dim=-1), torch.ones(2))

    def test_architecture(self) -> None:
        model = SignClassifierNet(num_classes=4)
        linears = [m for m in model.net if isinstance(m, torch.nn.Linear)]
        dropouts = [m for m in model.net if isinstance(m, torch.nn.Dropout)]
        assert [(l.in_features, l.out_features) for l in linears] == [
            (63, 256), (256, 128), (128, 64), (64, 4),
        ]
        assert len(dropouts) == 2
        assert all(d.p == 0.2 for d in dropouts)

    def test_invalid_num_classes(self) -> None:
        with pytest.raises(ValueError):
            SignClassifierNet(num_classes=0)


class TestTraining:
    def test_dataset_label_order(self) -> None:
        samples, labels = make_samples({"B": 0.0, "A": 1.0}, per_label=3)
        dataset = SignSampleDataset(samples, labels)
        assert dataset.label_names == ["B", "A"]
        assert dataset.num_classes == 2
        features, target = dataset[4]
        assert features.shape == (63,)
        assert int(target) == 1

    def test_trainer_reports_every_epoch(self) -> None:
        samples, labels = make_samples({"A": 0.0, "B": 0.5}, per_label=8)
        dataset = SignSampleDataset(samples, labels)
        seen: list[int] = []
        result = SignTrainer(
            SignClassifierNet(num_classes=2),
            dataset,
            TrainConfig(epochs=3, batch_size=4),
            on_epoch_end=lambda epoch, total, metrics: seen.append(epoch),
        ).train()
        assert seen == [1, 2, 3]
        assert result.total_epochs == 3
        assert len(result.history) == 3


class TestModelStore:
    def test_save_and_load(self, tmp_path: Path) -> None:
        store = ModelStore(tmp_path)
        model = SignClassifierNet(num_classes=2)
        store.save("libras-model", model, ["A", "B"])

        assert store.exists("libras-model")
        loaded, labels = store.load("libras-model")
        assert labels == ["A", "B"]
        x = torch.randn(1, 63)
        model.eval()
        torch.testing.assert_close(loaded.predict(x)["class_probs"], model.predict(x)["class_probs"])

    def test_labels_side_car(self, tmp_path: Path) -> None:
        store = ModelStore(tmp_path)
        store.save("libras-model", SignClassifierNet(num_classes=2), ["A", "B"])
        kv = json.loads((tmp_path / "labels.json").read_text())
        assert json.loads(kv["libras-model-labels"]) == ["A", "B"]

    def test_load_missing(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            ModelStore(tmp_path).load("libras-model")

    def test_save_rejects_mismatched_labels(self, tmp_path: Path) -> None:
        with pytest.raises(ModelFormatError):
            ModelStore(tmp_path).save("m", SignClassifierNet(num_classes=3), ["A", "B"])

    def test_read_garbage(self, tmp_path: Path) -> None:
        path = tmp_path / "garbage.pt"
        path.write_bytes(b"not a checkpoint")
        with pytest.raises(ModelFormatError):
            ModelStore.read_checkpoint(path)

    def test_read_wrong_input_dim(self, tmp_path: Path) -> None:
        model = SignClassifierNet(num_classes=2, input_dim=42)
        path = tmp_path / "wrong.pt"
        torch.save(ModelStore.to_checkpoint(model, ["A", "B"]), path)
        with pytest.raises(ModelFormatError, match="input dim"):
            ModelStore.read_checkpoint(path)

    def test_explicit_labels_override_embedded(self, tmp_path: Path) -> None:
        path = tmp_path / "m.pt"
        torch.save(ModelStore.to_checkpoint(SignClassifierNet(num_classes=2), ["A", "B"]), path)
        _, labels = ModelStore.read_checkpoint(path, ["X", "Y"])
        assert labels == ["X", "Y"]
        with pytest.raises(ModelFormatError):
            ModelStore.read_checkpoint(path, ["X", "Y", "Z"])

    def test_load_prefers_embedded_labels_over_stale_side_car(self, tmp_path: Path) -> None:
        store = ModelStore(tmp_path)
        store.save("libras-model", SignClassifierNet(num_classes=2), ["B", "A"])
        (tmp_path / "labels.json").write_text(json.dumps({"libras-model-labels": json.dumps(["A", "B"])}))

        _, labels = store.load("libras-model")
        assert labels == ["B", "A"]

    def test_side_car_failure_rolls_back_checkpoint(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        store = ModelStore(tmp_path)
        old = SignClassifierNet(num_classes=2)
        store.save("libras-model", old, ["A", "B"])

        def fail(self, name, label_names) -> None:  # noqa: ANN001
            raise OSError("disk full")

        monkeypatch.setattr(ModelStore, "save_labels", fail)
        with pytest.raises(OSError, match="disk full"):
            store.save("libras-model", SignClassifierNet(num_classes=3), ["X", "Y", "Z"])
        monkeypatch.undo()

        loaded, labels = store.load("libras-model")
        assert labels == ["A", "B"]
        assert loaded.num_classes == 2
        assert not (tmp_path / "libras-model.pt.bak").exists()

    def test_side_car_failure_on_first_save_leaves_nothing(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def fail(self, name, label_names) -> None:  # noqa: ANN001
            raise OSError("read-only")

        monkeypatch.setattr(ModelStore, "save_labels", fail)
        store = ModelStore(tmp_path)
        with pytest.raises(OSError):
            store.save("libras-model", SignClassifierNet(num_classes=2), ["A", "B"])
        assert not store.exists("libras-model")

    @pytest.mark.parametrize("raw", ["{bad", json.dumps("AB"), json.dumps([1, 2]), "123", ["A", "B"]])
    def test_corrupt_side_car_entry(self, tmp_path: Path, raw: object) -> None:
        (tmp_path / "labels.json").write_text(json.dumps({"libras-model-labels": raw}))
        with pytest.raises(ModelFormatError):
            ModelStore(tmp_path).load_labels("libras-model")


class TestClassifierManager:
    def test_initial_state(self, classifier_config: ClassifierConfig) -> None:
        manager = ClassifierManager(classifier_config)
        assert not manager.is_loaded
        assert manager.label_names == []
        with pytest.raises(ResourceUnavailableError):
            manager.infer(np.zeros(63, dtype=np.float32))

    def test_train_without_samples(self, classifier_config: ClassifierConfig) -> None:
        manager = ClassifierManager(classifier_config)
        with pytest.raises(UserInputError, match="Collect samples"):
            manager.train([], [])
        with pytest.raises(UserInputError):
            manager.train_async([], [])
        assert not manager.is_training

    def test_single_label_gives_certainty(self, classifier_config: ClassifierConfig) -> None:
        manager = ClassifierManager(replace(classifier_config, train=TrainConfig(epochs=2, batch_size=4)))
        samples, labels = make_samples({"A": 0.2}, per_label=5)
        manager.train(samples, labels)

        probs = manager.infer(samples[0])
        assert manager.label_names == ["A"]
        assert probs.shape == (1,)
        assert probs[0] == pytest.approx(1.0)

    @pytest.mark.slow
    def test_train_learns_separable_letters(self, classifier_config: ClassifierConfig) -> None:
        manager = ClassifierManager(classifier_config)
        samples, labels = make_samples({"A": -0.5, "B": 0.5}, per_label=20)
        epochs: list[int] = []
        manager.train(samples, labels, on_epoch_end=lambda e, total, m: epochs.append(e))

        assert epochs == list(range(1, 31))
        assert manager.status == "Model trained and saved locally"
        probs, names = manager.predict(samples[0])
        assert names == ["A", "B"]
        assert names[int(np.argmax(probs))] == "A"
        probs, _ = manager.predict(samples[-1])
        assert names[int(np.argmax(probs))] == "B"

    def test_trained_model_persists_and_exports(self, classifier_config: ClassifierConfig) -> None:
        config = replace(classifier_config, train=TrainConfig(epochs=2, batch_size=8))
        manager = ClassifierManager(config)
        samples, labels = make_samples({"A": -0.5, "B": 0.5}, per_label=4)
        manager.train(samples, labels)

        assert (Path(config.export_dir) / "libras-model.pt").exists()

        restored = ClassifierManager(config)
        assert restored.auto_load()
        assert restored.status == "Model loaded automatically (local storage)"
        assert restored.label_names == ["A", "B"]
        np.testing.assert_allclose(
            restored.infer(samples[0]), manager.infer(samples[0]), atol=1e-6
        )

    def test_train_async(self, classifier_config: ClassifierConfig) -> None:
        manager = ClassifierManager(replace(classifier_config, train=TrainConfig(epochs=2, batch_size=8)))
        samples, labels = make_samples({"A": -0.5, "B": 0.5}, per_label=4)
        future = manager.train_async(samples, labels)
        result = future.result(timeout=60)
        assert result.total_epochs == 2
        assert manager.is_loaded
        assert not manager.is_training
        manager.close()

    def test_failed_training_keeps_previous_model(
        self, classifier_config: ClassifierConfig, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        manager = ClassifierManager(replace(classifier_config, train=TrainConfig(epochs=1, batch_size=8)))
        samples, labels = make_samples({"A": -0.5, "B": 0.5}, per_label=4)
        manager.train(samples, labels)

        def boom(self) -> None:  # noqa: ANN001
            raise RuntimeError("out of memory")

        monkeypatch.setattr(SignTrainer, "train", boom)
        new_samples, new_labels = make_samples({"X": 0.0, "Y": 1.0, "Z": 2.0}, per_label=2)
        with pytest.raises(RuntimeError, match="out of memory"):
            manager.train(new_samples, new_labels)

        assert manager.status == "Training error. Previous model kept."
        assert manager.label_names == ["A", "B"]
        assert not manager.is_training

    def test_auto_load_nothing(self, classifier_config: ClassifierConfig) -> None:
        manager = ClassifierManager(classifier_config)
        assert not manager.auto_load()
        assert manager.status == "No model found. Train or load one manually."

    def test_auto_load_bundled(self, classifier_config: ClassifierConfig, tmp_path: Path) -> None:
        bundled = tmp_path / "assets" / "libras-model.pt"
        bundled.parent.mkdir()
        torch.save(ModelStore.to_checkpoint(SignClassifierNet(num_classes=3), ["A", "B", "C"]), bundled)

        manager = ClassifierManager(replace(classifier_config, bundled_model_path=str(bundled)))
        assert manager.auto_load()
        assert manager.status == "Base model loaded (pre-trained)"
        assert manager.label_names == ["A", "B", "C"]
        # bundled model is copied into local storage
        assert manager.store.exists("libras-model")

    def test_auto_load_corrupt_store_falls_through(self, classifier_config: ClassifierConfig) -> None:
        models_dir = Path(classifier_config.models_dir)
        models_dir.mkdir(parents=True)
        (models_dir / "libras-model.pt").write_bytes(b"\x00garbage")

        manager = ClassifierManager(classifier_config)
        assert not manager.auto_load()
        assert not manager.is_loaded

    def test_load_external(self, classifier_config: ClassifierConfig, tmp_path: Path) -> None:
        path = tmp_path / "external.pt"
        torch.save(ModelStore.to_checkpoint(SignClassifierNet(num_classes=2), ["A", "B"]), path)
        labels_path = tmp_path / "labels.json"
        labels_path.write_text(json.dumps(["L", "O"]))

        manager = ClassifierManager(classifier_config)
        assert manager.load_external(path, labels_path) == ["L", "O"]
        assert manager.label_names == ["L", "O"]
        assert manager.status == "Model loaded and saved locally"
        assert manager.store.load_labels("libras-model") == ["L", "O"]

    def test_invalid_external_keeps_live_model(
        self, classifier_config: ClassifierConfig, tmp_path: Path
    ) -> None:
        manager = ClassifierManager(classifier_config)
        good = tmp_path / "good.pt"
        torch.save(ModelStore.to_checkpoint(SignClassifierNet(num_classes=2), ["A", "B"]), good)
        manager.load_external(good)

        bad = tmp_path / "bad.pt"
        bad.write_bytes(b"junk")
        with pytest.raises(ModelFormatError):
            manager.load_external(bad)

        mismatched = tmp_path / "labels.json"
        mismatched.write_text(json.dumps(["A", "B", "C"]))
        with pytest.raises(ModelFormatError):
            manager.load_external(good, mismatched)

        assert manager.label_names == ["A", "B"]
        assert manager.infer(np.zeros(63, dtype=np.float32)).shape == (2,)

    def test_persistence_failure_keeps_live_and_stored_in_step(
        self, classifier_config: ClassifierConfig, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        config = replace(classifier_config, train=TrainConfig(epochs=2, batch_size=8))
        manager = ClassifierManager(config)
        samples, labels = make_samples({"A": -0.5, "B": 0.5}, per_label=4)
        manager.train(samples, labels)

        def fail(self, name, label_names) -> None:  # noqa: ANN001
            raise OSError("disk full")

        monkeypatch.setattr(ModelStore, "save_labels", fail)
        swapped, swapped_labels = make_samples({"B": 0.5, "A": -0.5}, per_label=4)
        with pytest.raises(OSError, match="disk full"):
            manager.train(swapped, swapped_labels)
        monkeypatch.undo()

        assert manager.status == "Could not save model. Previous model kept."
        assert manager.label_names == ["A", "B"]
        assert not manager.is_training

        restored = ClassifierManager(config)
        assert restored.auto_load()
        assert restored.label_names == manager.label_names
        np.testing.assert_allclose(
            restored.infer(samples[0]), manager.infer(samples[0]), atol=1e-6
        )

    def test_auto_load_survives_corrupt_label_side_car(
        self, classifier_config: ClassifierConfig, tmp_path: Path
    ) -> None:
        models_dir = Path(classifier_config.models_dir)
        models_dir.mkdir(parents=True)
        (models_dir / "labels.json").write_text(json.dumps({"libras-model-labels": "{bad"}))

        # bundled checkpoint without embedded labels forces a side-car lookup
        checkpoint = ModelStore.to_checkpoint(SignClassifierNet(num_classes=2), ["A", "B"])
        del checkpoint["label_names"]
        bundled = tmp_path / "assets" / "libras-model.pt"
        bundled.parent.mkdir()
        torch.save(checkpoint, bundled)

        manager = ClassifierManager(replace(classifier_config, bundled_model_path=str(bundled)))
        assert not manager.auto_load()
        assert manager.status == "No model found. Train or load one manually."
        assert not manager.is_loaded
