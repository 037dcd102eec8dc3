#!/usr/bin/env python3
"""Command line front end: render a color timeline and thumbnail sheets from a video."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from src.pipeline import (
    CompositingPolicy,
    TimelineGenerator,
    TimestripError,
    __version__,
    open_frame_source,
    write_image,
    write_thumbnails,
)
from src.service import config as runtime_config
from src.service.reports import build_report, write_report
from src.service.schemas import RenderOptions

logger = logging.getLogger("timestrip.cli")

EXAMPLES = """examples:
    timestrip video.mp4
    timestrip -w 1000 -h 500 --timeline output.jpg video.mp4
    timestrip --thumbnails thumbnails.vtt -H 120 video.mp4
"""


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="timestrip",
        description="Create a visual color timeline and thumbnail sheets from a video file",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
    )
    parser.add_argument("input", help="Name of the video file")
    parser.add_argument("--help", action="help", help="Show this help message and exit")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-w",
        "--width",
        type=int,
        default=runtime_config.TIMELINE_WIDTH,
        help=f"Width of the visual timeline in pixels (default: {runtime_config.TIMELINE_WIDTH})",
    )
    parser.add_argument(
        "-h",
        "--height",
        type=int,
        default=runtime_config.TIMELINE_HEIGHT,
        help=f"Height of the visual timeline in pixels (default: {runtime_config.TIMELINE_HEIGHT})",
    )
    parser.add_argument(
        "-H",
        "--thumbnail-height",
        type=int,
        default=runtime_config.THUMBNAIL_HEIGHT,
        help=f"Height of a single thumbnail in pixels (default: {runtime_config.THUMBNAIL_HEIGHT})",
    )
    parser.add_argument(
        "--timeline",
        metavar="FILE",
        default=None,
        help="Timeline output file. Without any output option, INPUT.timeline.jpg is written",
    )
    parser.add_argument(
        "--thumbnails",
        metavar="FILE.vtt",
        default=None,
        help="WebVTT manifest output; thumbnail sheets FILE-01.jpg, FILE-02.jpg, ... are written beside it",
    )
    parser.add_argument(
        "--thumbnail-format",
        choices=["jpg", "png"],
        default="jpg",
        help="Image format of the thumbnail sheets (default: jpg)",
    )
    parser.add_argument(
        "--max-grid-width",
        type=int,
        default=runtime_config.MAX_GRID_WIDTH,
        help=f"Maximum width of one thumbnail sheet (default: {runtime_config.MAX_GRID_WIDTH})",
    )
    parser.add_argument(
        "--max-grid-height",
        type=int,
        default=runtime_config.MAX_GRID_HEIGHT,
        help=f"Maximum height of one thumbnail sheet (default: {runtime_config.MAX_GRID_HEIGHT})",
    )
    parser.add_argument(
        "--policy",
        choices=[policy.value for policy in CompositingPolicy],
        default=runtime_config.POLICY,
        help="How several frames in one column are combined (default: last)",
    )
    parser.add_argument(
        "--backend",
        choices=["auto", "opencv", "ffmpeg"],
        default=runtime_config.BACKEND,
        help="Decoder backend (default: auto)",
    )
    parser.add_argument(
        "--seek",
        action="store_true",
        help="Seek to each column instead of decoding the whole stream (OpenCV backend)",
    )
    parser.add_argument(
        "--no-early-stop",
        dest="early_stop",
        action="store_false",
        help="Keep decoding after every column has received a frame",
    )
    parser.add_argument(
        "--quality",
        type=int,
        default=runtime_config.JPEG_QUALITY,
        help=f"JPEG quality 1-100 (default: {runtime_config.JPEG_QUALITY})",
    )
    parser.add_argument(
        "--report-dir",
        default=str(runtime_config.REPORT_DIR) if runtime_config.REPORT_DIR else None,
        help="Directory for JSON run reports (env: TIMESTRIP_REPORT_DIR; default: no report)",
    )
    parser.add_argument("-q", "--quiet", action="store_true", help="Do not print progress")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def build_options(args: argparse.Namespace) -> RenderOptions:
    return RenderOptions(
        input_path=args.input,
        timeline_width=args.width,
        timeline_height=args.height,
        thumbnail_height=args.thumbnail_height,
        max_grid_width=args.max_grid_width,
        max_grid_height=args.max_grid_height,
        timeline_path=args.timeline,
        manifest_path=args.thumbnails,
        thumbnail_format=args.thumbnail_format,
        policy=args.policy,
        backend=args.backend,
        seek_mode=args.seek,
        early_stop=args.early_stop,
        jpeg_quality=args.quality,
        report_dir=args.report_dir,
    )


def _print_progress(percent: float) -> None:
    sys.stderr.write(f"\rtimestrip: {percent:.1f}% ")
    sys.stderr.flush()


def run(options: RenderOptions, show_progress: bool = True) -> Dict[str, object]:
    with_thumbnails = options.manifest_path is not None
    partial = options.to_partial_config()
    generator = TimelineGenerator(
        partial,
        logger=logger,
        with_thumbnails=with_thumbnails,
        progress=_print_progress if show_progress else None,
    )
    source = open_frame_source(
        options.input_path,
        output_height=partial.decode_height(with_thumbnails),
        target_frames=options.timeline_width,
        backend=options.backend,
        seek_mode=options.seek_mode,
        logger=logger,
    )
    result = generator.generate(source)
    if show_progress:
        sys.stderr.write("\n")

    outputs: Dict[str, object] = {}
    if options.timeline_path:
        outputs["timeline"] = str(write_image(Path(options.timeline_path), result.timeline, options.jpeg_quality))
        print(f"-> '{options.timeline_path}'")
    if options.manifest_path:
        manifest, grids = write_thumbnails(
            result,
            Path(options.manifest_path),
            extension=options.thumbnail_format,
            quality=options.jpeg_quality,
        )
        outputs["thumbnails"] = [str(path) for path in grids]
        outputs["manifest"] = str(manifest)
        for path in grids:
            print(f"-> '{path}'")
        print(f"-> '{manifest}'")

    if options.report_dir:
        report_dir = runtime_config.ensure_dirs(Path(options.report_dir))
        if report_dir is not None:
            report_path = write_report(report_dir, build_report(options.input_path, result, outputs))
            outputs["report"] = str(report_path)
            logger.info("Run report written to %s", report_path)
    return outputs


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        options = build_options(args)
    except ValidationError as error:
        for issue in error.errors():
            location = ".".join(str(part) for part in issue.get("loc", ())) or "options"
            print(f"[ERROR] {location}: {issue.get('msg')}", file=sys.stderr)
        return 2

    try:
        run(options, show_progress=not args.quiet)
    except TimestripError as error:
        print(f"[ERROR] {error}", file=sys.stderr)
        return 1
    except Exception as error:  # pragma: no cover - integration level logging
        logger.debug("Unexpected failure", exc_info=True)
        print(f"[ERROR] {error}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
