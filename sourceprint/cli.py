"""Thin CLI entry point: builds a Manifest and calls the engine."""

import argparse
import json
import logging
import subprocess
import sys
from pathlib import Path

from sourceprint import ffutil
from sourceprint.engine import process
from sourceprint.errors import TimecodeError
from sourceprint.manifest import load_manifest
from sourceprint.models import MediaType
from sourceprint.report import descriptor_to_dict, linking_to_dict, plan_to_dict
from sourceprint.timecode import TimecodeEngine


def _timecode(args: argparse.Namespace) -> int:
    try:
        engine = TimecodeEngine(args.rate, drop_frame=args.drop_frame)
        if args.value.isdigit():
            print(engine.timecode_from_frames(int(args.value)))
        else:
            print(engine.frames_from_timecode(args.value))
    except TimecodeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


def _probe(args: argparse.Namespace) -> int:
    ffutil.check_ffprobe()
    media_type = MediaType.ORIGINAL_CAMERA_FILE if args.ocf else MediaType.GRADED_SEGMENT
    paths: list[Path] = []
    for p in args.paths:
        paths.extend(ffutil.find_media_files(p) if p.is_dir() else [p])
    descriptors = [descriptor_to_dict(ffutil.probe(p, media_type)) for p in paths]
    print(json.dumps(descriptors, indent=2))
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="sourceprint",
        description="SourcePrint: link graded/VFX segments to camera originals and plan cuts.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    link = sub.add_parser("link", help="Link segments to OCF parents")
    link.add_argument("manifest", type=Path, help="Path to a JSON manifest file")
    link.add_argument("--json", action="store_true", help="Print the result as JSON")

    plan = sub.add_parser("plan", help="Link, then build a frame ownership plan per parent")
    plan.add_argument("manifest", type=Path, help="Path to a JSON manifest file")
    plan.add_argument("--output", "-o", type=Path, help="Write the JSON report here")
    plan.add_argument("--visualize", action="store_true", help="Include visualization data")

    tc = sub.add_parser("timecode", help="Convert a timecode to frames or frames to a timecode")
    tc.add_argument("value", help="Timecode (HH:MM:SS:FF) or frame count")
    tc.add_argument("--rate", "-r", default="24", help="Frame rate, e.g. 24, 29.97, 30000/1001")
    tc.add_argument("--drop-frame", "-d", action="store_true", help="Drop-frame counting")

    probe = sub.add_parser("probe", help="Print media metadata via ffprobe")
    probe.add_argument("paths", nargs="+", type=Path, help="Files or directories")
    probe.add_argument("--ocf", action="store_true", help="Treat files as camera originals")

    serve = sub.add_parser("serve", help="Launch the JSON API")
    serve.add_argument("--port", type=int, default=8321, help="Port to listen on")
    serve.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "serve":
        from sourceprint.web import create_app
        app = create_app()
        print(f"SourcePrint API: http://{args.host}:{args.port}")
        app.run(host=args.host, port=args.port, debug=False)
        return

    if args.command == "timecode":
        sys.exit(_timecode(args))

    if args.command == "probe":
        try:
            sys.exit(_probe(args))
        except (ffutil.FFprobeNotFoundError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        except subprocess.CalledProcessError as e:
            print(f"Error: ffprobe failed: {(e.stderr or '')[-500:]}", file=sys.stderr)
            sys.exit(1)

    try:
        m = load_manifest(args.manifest)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.command == "link":
        m.analysis.enabled = False
    elif args.visualize:
        m.analysis.include_visualization = True

    def on_progress(stage: str, frac: float) -> None:
        print(f"  [{frac:3.0%}] {stage}", file=sys.stderr)

    result = process(m, on_progress=on_progress)

    if args.command == "link":
        if args.json:
            print(json.dumps(linking_to_dict(result.linking), indent=2))
            return
        print()
        print(result.linking.summary)
        for parent in result.linking.parents:
            print(f"  {parent.ocf.file_name}")
            for child in parent.children:
                print(f"    <- {child.segment.file_name} ({child.confidence.value}, {child.method})")
        for seg in result.linking.unmatched_segments:
            print(f"  unmatched: {seg.file_name}")
        return

    report = {
        "linking": linking_to_dict(result.linking),
        "plans": {pp.parent.ocf.file_name: plan_to_dict(pp.plan) for pp in result.plans},
        "skipped_parents": result.skipped_parents,
    }
    text = json.dumps(report, indent=2)
    if args.output:
        args.output.write_text(text)
        print(f"Done! Report: {args.output}")
    else:
        print(text)
    for pp in result.plans:
        stats = pp.plan.statistics
        print(
            f"  {pp.parent.ocf.file_name}: {len(pp.plan.ranges)} ranges, "
            f"{stats.vfx_frames} VFX / {stats.grade_frames} grade frames, "
            f"{stats.overlap_count} overlaps",
            file=sys.stderr,
        )
