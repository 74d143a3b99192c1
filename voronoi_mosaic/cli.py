"""Headless rendering: voronoi-mosaic SOURCE TARGET --out mosaic.gif"""

import argparse
import dataclasses
import logging
import sys
from typing import List, Optional

from . import image_io
from .errors import MosaicError
from .events import FrameEvent, ProgressEvent
from .permutation_model import PermutationModel
from .pipeline import run_pipeline
from .settings import MosaicSettings

logger = logging.getLogger(__name__)

# log every n-th frame
FRAME_LOG_INTERVAL = 30


def build_parser() -> argparse.ArgumentParser:
    d = MosaicSettings()
    p = argparse.ArgumentParser(
        prog="voronoi-mosaic",
        description="Rearrange the pixels of SOURCE into an animated Voronoi mosaic of TARGET.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument("source", help="Image whose pixels become the seeds")
    p.add_argument("target", help="Image the mosaic should resemble")
    p.add_argument("--side", type=int, default=d.side, help="Working resolution (side x side)")
    p.add_argument("--iterations", type=int, default=d.iterations, help="Refine-phase swap attempts")
    p.add_argument("--proximity", type=float, default=d.proximity, help="Migration distance penalty")
    p.add_argument("--edge-alpha", type=float, default=d.edge_alpha, help="Extra weight on target edges")
    p.add_argument("--frames", type=int, default=d.frames, help="Animation frames")
    p.add_argument("--fps", type=int, default=d.fps, help="Animation frame rate")
    p.add_argument("--seed", type=int, default=d.seed, help="Random seed for the refine phase")
    p.add_argument("--no-anneal", action="store_true", help="Only accept improving swaps")
    p.add_argument("--max-side", type=int, default=d.max_side, help="Largest accepted side length")
    p.add_argument("--scale", type=int, default=1, help="Nearest-neighbour upscale of saved images")
    p.add_argument("--out", default=None, help="Animated GIF/WebP to write")
    p.add_argument("--png", default=None, help="PNG of the final frame")
    p.add_argument("--save-permutation", default=None, help="Store the computed assignment (.npy)")
    p.add_argument("--load-permutation", default=None, help="Reuse a stored assignment (.npy)")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return p


def settings_from_args(args: argparse.Namespace) -> MosaicSettings:
    return dataclasses.replace(
        MosaicSettings(),
        side=args.side,
        iterations=args.iterations,
        proximity=args.proximity,
        edge_alpha=args.edge_alpha,
        frames=args.frames,
        fps=args.fps,
        seed=args.seed,
        anneal=not args.no_anneal,
        max_side=args.max_side,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        format="%(levelname)s: %(message)s",
        level=logging.DEBUG if args.verbose else logging.INFO,
    )
    if args.out is None and args.png is None and args.save_permutation is None:
        logger.warning("No --out, --png or --save-permutation given; nothing will be written")

    settings = settings_from_args(args)
    try:
        settings.validate()
        settings.check_resources()
        permutation = None
        if args.load_permutation:
            permutation = PermutationModel.from_npy(args.load_permutation)
            settings = dataclasses.replace(settings, side=permutation.H)
        src = image_io.load_square_rgb(args.source, settings.side)
        tgt = image_io.load_square_rgb(args.target, settings.side)
        events = run_pipeline(src, tgt, settings, permutation=permutation)

        frames = []
        last_frame = None
        last_phase = None
        for event in events:
            if isinstance(event, ProgressEvent):
                if event.permutation is not None:
                    permutation = event.permutation
                if event.phase != last_phase or event.phase == "refine":
                    logger.info("[%5.1f%%] %s", 100 * event.progress, event.describe())
                last_phase = event.phase
            elif isinstance(event, FrameEvent):
                if args.out:
                    frames.append(event.frame)
                if event.index % FRAME_LOG_INTERVAL == 0 or event.last:
                    logger.info("[%5.1f%%] %s", 100 * event.progress, event.describe())
                last_frame = event.frame

        if args.save_permutation and permutation is not None:
            permutation.save_npy(args.save_permutation)
            logger.info("Saved permutation to %s", args.save_permutation)
        if args.png and last_frame is not None:
            image_io.save_png(last_frame, args.png, args.scale)
        if args.out:
            image_io.save_animation(frames, args.out, settings.fps, args.scale)
    except (MosaicError, OSError) as exc:
        logger.error("%s", exc)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
