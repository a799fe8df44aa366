"""Command-line entry point: classify the image at a URL."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import TYPE_CHECKING

from imgrecognition.config import get_settings
from imgrecognition.errors import RecognitionError, UsageError
from imgrecognition.fetch import fetch_image
from imgrecognition.ml.model_store import ModelStore
from imgrecognition.ml.pipeline import ClassificationPipeline

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

EXIT_FAILURE = 1
EXIT_USAGE = 2


def _parse_args(argv: Sequence[str] | None) -> str:
    parser = argparse.ArgumentParser(prog="imgrecognition", description="Classify the image at a URL.")
    parser.add_argument("image_url", nargs="?", help="URL of a JPEG image")
    args = parser.parse_args(argv)
    if not args.image_url:
        raise UsageError("missing image url")
    return str(args.image_url)


def main(argv: Sequence[str] | None = None) -> int:
    """Run one classification and print the top results."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    try:
        url = _parse_args(argv)
    except UsageError as exc:
        print(exc.summary, file=sys.stderr)
        return EXIT_USAGE

    print(f"url: {url}")
    try:
        image = fetch_image(url, timeout=settings.fetch_timeout, max_bytes=settings.max_file_size)
        model = ModelStore(settings).load()
        labels = ClassificationPipeline(model, settings).classify(image)
    except RecognitionError as exc:
        logger.error("%s: %s", exc.summary, exc)
        return EXIT_FAILURE

    for label in labels:
        print(f"label: {label.name}, probability: {label.probability * 100:.2f}%")
    return 0


if __name__ == "__main__":
    sys.exit(main())
