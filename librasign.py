"""LibrasSign CLI — command-line interface for the demo, training and server.

Usage:
    python librasign.py demo --camera 0 --label A
    python librasign.py train --dataset data/libras_dataset.json --epochs 50
    python librasign.py load-model --model my-model.pt --labels labels.json
    python librasign.py serve --port 8000
    python librasign.py info
"""

from __future__ import annotations

import argparse
import sys

from loguru import logger

from backend.config import settings
from backend.logging_config import setup_logging


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="librasign",
        description="LibrasSign — static hand-sign letter recognition CLI",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # ---- demo ----
    demo_parser = subparsers.add_parser("demo", help="Run real-time webcam recognition")
    demo_parser.add_argument("--camera", type=int, default=settings.camera_index, help="Camera device index")
    demo_parser.add_argument("--label", type=str, default="", help="Letter recorded when pressing 'c'")
    demo_parser.add_argument("--dataset", type=str, default=settings.dataset_path, help="Dataset file for 's'/'l'")

    # ---- train ----
    train_parser = subparsers.add_parser("train", help="Train a classifier from a dataset file")
    train_parser.add_argument("--dataset", type=str, default=settings.dataset_path, help="Dataset JSON path")
    train_parser.add_argument("--epochs", type=int, default=settings.train_epochs, help="Number of training epochs")
    train_parser.add_argument("--batch-size", type=int, default=settings.train_batch_size, help="Batch size")
    train_parser.add_argument("--lr", type=float, default=settings.learning_rate, help="Learning rate")
    train_parser.add_argument("--models-dir", type=str, default=settings.models_dir, help="Model store directory")

    # ---- load-model ----
    load_parser = subparsers.add_parser("load-model", help="Install an external classifier")
    load_parser.add_argument("--model", type=str, required=True, help="Checkpoint (.pt)")
    load_parser.add_argument("--labels", type=str, default=None, help="Label Set JSON list")
    load_parser.add_argument("--models-dir", type=str, default=settings.models_dir, help="Model store directory")

    # ---- serve ----
    serve_parser = subparsers.add_parser("serve", help="Start the FastAPI API server")
    serve_parser.add_argument("--host", type=str, default=settings.host, help="Host")
    serve_parser.add_argument("--port", type=int, default=settings.port, help="Port")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    # ---- info ----
    subparsers.add_parser("info", help="Show system information")

    args = parser.parse_args()
    setup_logging(log_to_file=args.command != "info")

    if args.command == "demo":
        cmd_demo(args)
    elif args.command == "train":
        cmd_train(args)
    elif args.command == "load-model":
        cmd_load_model(args)
    elif args.command == "serve":
        cmd_serve(args)
    elif args.command == "info":
        cmd_info()


def cmd_train(args: argparse.Namespace) -> None:
    """Train a classifier offline from an exported dataset."""
    from core.classifier.manager import ClassifierConfig, ClassifierManager
    from core.collection.collector import SampleCollector
    from core.errors import UserInputError
    from training.trainers.train_classifier import TrainConfig

    collector = SampleCollector()
    try:
        collector.load(args.dataset)
    except (FileNotFoundError, UserInputError) as e:
        logger.error(str(e))
        sys.exit(1)

    manager = ClassifierManager(
        ClassifierConfig(
            models_dir=args.models_dir,
            model_name=settings.model_name,
            bundled_model_path=None,
            export_dir=settings.export_dir,
            train=TrainConfig(
                epochs=args.epochs,
                batch_size=args.batch_size,
                learning_rate=args.lr,
                seed=settings.seed,
            ),
        )
    )
    logger.info(f"Dataset: {collector.counts}")

    try:
        result = manager.train(collector.samples, collector.labels)
    except (UserInputError, OSError) as e:
        logger.error(str(e))
        sys.exit(1)
    finally:
        manager.close()

    logger.info(f"Training complete! Final accuracy: {result.final_accuracy:.4f}")


def cmd_load_model(args: argparse.Namespace) -> None:
    """Validate and install an external classifier into the model store."""
    from core.classifier.manager import ClassifierConfig, ClassifierManager
    from core.errors import UserInputError

    manager = ClassifierManager(
        ClassifierConfig(models_dir=args.models_dir, model_name=settings.model_name)
    )
    try:
        labels = manager.load_external(args.model, args.labels)
    except UserInputError as e:
        logger.error(f"Error loading model: {e}")
        sys.exit(1)
    finally:
        manager.close()
    logger.info(f"Model installed with labels {labels}")


def cmd_demo(args: argparse.Namespace) -> None:
    """Run real-time webcam recognition.

    Keys: q quit, c toggle collection, t train, s save dataset,
    l load dataset, backspace delete last letter, x clear text.
    """
    import cv2

    from core.errors import UserInputError
    from core.inference.pipeline import PipelineConfig, SignPipeline
    from core.text_buffer import TextBuffer

    text = TextBuffer()
    pipeline = SignPipeline(PipelineConfig.from_settings(settings), on_text=text.append)

    cap = cv2.VideoCapture(args.camera)
    if not cap.isOpened():
        logger.error(f"Cannot open camera {args.camera}")
        sys.exit(1)
    cap.set(cv2.CAP_PROP_FRAME_WIDTH, settings.camera_width)
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, settings.camera_height)

    logger.info("Press 'q' to quit")

    with pipeline:
        while True:
            ret, frame = cap.read()
            if not ret:
                break
            frame = cv2.flip(frame, 1)

            result = pipeline.process_frame(frame)
            detector = pipeline.detector
            if detector is not None and hasattr(detector, "draw_landmarks"):
                frame = detector.draw_landmarks(frame)

            h, w = frame.shape[:2]
            if result.countdown > 0:
                cv2.putText(frame, str(result.countdown), (w // 2 - 25, h // 2 + 25),
                            cv2.FONT_HERSHEY_SIMPLEX, 3.0, (255, 255, 255), 6)
            message = pipeline.stability.message
            if message:
                cv2.putText(frame, message, (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 0.7, (255, 255, 255), 2)

            collecting = pipeline.collector.current_label
            footer = f"{result.status} | {pipeline.classifier.status}"
            if collecting:
                footer += f" | Collecting '{collecting}': {pipeline.collector.counts.get(collecting, 0)}"
            cv2.putText(frame, footer, (10, h - 40), cv2.FONT_HERSHEY_SIMPLEX, 0.5, (68, 68, 68), 1)
            cv2.putText(frame, text.text[-40:], (10, h - 12), cv2.FONT_HERSHEY_SIMPLEX, 0.8, (0, 255, 0), 2)

            cv2.imshow("LibrasSign", frame)
            key = cv2.waitKey(1) & 0xFF
            try:
                if key == ord("q"):
                    break
                elif key == ord("c"):
                    pipeline.toggle_collecting(args.label)
                elif key == ord("t"):
                    pipeline.train_async()
                elif key == ord("s"):
                    pipeline.collector.save(args.dataset)
                elif key == ord("l"):
                    pipeline.collector.load(args.dataset)
                elif key == 8:
                    text.backspace()
                elif key == ord("x"):
                    text.clear()
            except (UserInputError, FileNotFoundError) as e:
                logger.warning(str(e))

    cap.release()
    cv2.destroyAllWindows()
    pipeline.classifier.close()


def cmd_serve(args: argparse.Namespace) -> None:
    """Start the FastAPI API server (optional server mode)."""
    import uvicorn

    logger.info("Starting LibrasSign API server...")
    uvicorn.run(
        "backend.apps.api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
    )


def cmd_info() -> None:
    """Show system information."""
    import platform

    import torch

    try:
        import mediapipe as mp
        mp_ver = mp.__version__
    except ImportError:
        mp_ver = "not installed"

    print(f"""
LibrasSign — static hand-sign recognition
══════════════════════════════════════════
  Python:       {platform.python_version()}
  Platform:     {platform.system()} {platform.machine()}
  PyTorch:      {torch.__version__}
  CUDA:         {"yes" if torch.cuda.is_available() else "no"}
  MediaPipe:    {mp_ver}
  Models dir:   {settings.models_dir}
  Confidence:   {settings.confidence_threshold}
  Countdown:    {settings.countdown_seconds}s
""")


if __name__ == "__main__":
    main()
