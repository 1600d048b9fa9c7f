import os
import sys
import logging
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from models.errors import BackendUnavailableError
from models.keying_result import BatchOutcome
from pipeline.background_remover import remove_backgrounds
from repositories.image_repository import ImageRepository

INPUT_DIR = os.getenv("INPUT_DIR", "data/input")
OUTPUT_DIR = os.getenv("OUTPUT_DIR", "data/transparent")


def log_batch_results(outcomes: List[BatchOutcome]) -> None:
    """Print a per-file summary of a keying batch."""
    if not outcomes:
        print("No images to key.")
        return

    degraded = sum(1 for o in outcomes if o.ok and o.result.degraded)
    failed = sum(1 for o in outcomes if not o.ok)

    print(f"{'='*60}")
    for o in outcomes:
        if not o.ok:
            print(f"  x {o.source.name}: {o.error}")
            continue
        r = o.result
        note = f" (degraded after '{r.failed_stage}')" if r.degraded else ""
        print(f"  + {o.source.name} → {r.image.path} | key {r.key_color} | "
              f"{r.method} | {r.image.width}x{r.image.height}{note}")
    print(f"{'='*60}")
    print(f"Keyed {len(outcomes) - failed}/{len(outcomes)} image(s), "
          f"{degraded} degraded, {failed} failed")


def main(argv: Optional[List[str]] = None) -> int:
    # --- Centralized Logging Configuration ---
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
        datefmt='%H:%M:%S'
    )

    # Positional paths override INPUT_DIR
    argv = sys.argv[1:] if argv is None else argv
    repo = ImageRepository()
    if argv:
        paths = [Path(p) for p in argv]
    else:
        try:
            paths = list(repo.iter_paths(INPUT_DIR))
        except NotADirectoryError:
            print(f"Input folder not found: {INPUT_DIR}", file=sys.stderr)
            return 1

    print(f"\nKeying {len(paths)} image(s) into {OUTPUT_DIR} ...")
    try:
        outcomes = remove_backgrounds(paths, output_dir=OUTPUT_DIR)
    except BackendUnavailableError as err:
        print(f"Error: {err}", file=sys.stderr)
        return 1

    log_batch_results(outcomes)
    return 0 if all(o.ok for o in outcomes) else 1


if __name__ == "__main__":
    sys.exit(main())
