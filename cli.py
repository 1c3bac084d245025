#!/usr/bin/env python3
"""
CLI for Frame Enhancer

A command-line interface for headless operation and scripting.

Usage:
    python cli.py extract --video path/to/video.mp4 --output ./frames
    python cli.py enhance --video path/to/video.mp4 --output ./results --select 1.25 --select 3.5

For help on any command:
    python cli.py <command> --help
"""

import sys
from pathlib import Path

import click

from core.config import Config
from core.error_handling import FrameEnhancerError, RemoteServiceError
from core.events import EnhancementEvent, ExtractionEvent
from core.export import ZIP_NAME, export_enhanced_zip, save_frames
from core.logger import AppLogger
from core.models import GenderFilter, RunState
from core.remote import build_gemini_services
from core.session import ProcessingSession
from core.utils import format_time


def _setup_runtime(output_dir: Path, verbose: bool = False):
    """Initialize shared runtime components."""
    config = Config()
    config.log_level = "DEBUG" if verbose else "INFO"
    logger = AppLogger(config, log_dir=output_dir, log_to_file=True, log_to_console=False)
    try:
        classifier, enhancer = build_gemini_services(config, logger)
    except RemoteServiceError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)
    session = ProcessingSession(config, logger, classifier, enhancer)
    return config, logger, session


def _echo_progress(fraction: float, desc: str = ""):
    click.echo(f"\r   [{fraction:6.1%}] {desc}".ljust(80), nl=False)


def _run_extraction(session: ProcessingSession, video, start, end, fps, gender):
    click.secho("\n🎬 EXTRACTION", fg="cyan", bold=True)
    click.echo(f"   Video: {video}")
    click.echo(f"   Segment: {format_time(start)} - {format_time(end) if end is not None else 'end'} at {fps} fps")
    click.echo(f"   Filter: {gender}")
    try:
        event = ExtractionEvent(video_path=str(video), start_time=start, end_time=end, fps=fps, gender=gender)
    except ValueError as e:
        click.secho(f"❌ Invalid options: {e}", fg="red")
        sys.exit(2)
    session.reporter.progress = _echo_progress
    result = session.start_extraction(event)
    click.echo()
    if session.state == RunState.ERROR:
        click.secho(f"❌ {result.message}", fg="red")
        sys.exit(1)
    click.secho(f"✓ {result.message}", fg="green")
    return result


def _segment_options(func):
    options = [
        click.option("--video", "-v", required=True, type=click.Path(exists=True, dir_okay=False), help="Path to input video file."),
        click.option("--output", "-o", required=True, type=click.Path(file_okay=False), help="Output directory."),
        click.option("--start", default=0.0, type=float, show_default=True, help="Segment start in seconds."),
        click.option("--end", default=None, type=float, help="Segment end in seconds (default: end of video)."),
        click.option("--fps", default=4, type=int, show_default=True, help="Frames sampled per second."),
        click.option(
            "--gender",
            "-g",
            default=GenderFilter.ALL.value,
            type=click.Choice([g.value for g in GenderFilter]),
            show_default=True,
            help="Keep frames with any prominent face, or only male/female faces.",
        ),
        click.option("--verbose", is_flag=True, help="Enable verbose logging."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.version_option(version="1.0.0", prog_name="Frame Enhancer CLI")
def cli():
    """Frame Enhancer - CLI for headless operation."""
    pass


@cli.command()
@_segment_options
def extract(video, output, start, end, fps, gender, verbose):
    """
    Extract face frames from a video segment.

    Accepted frames are written to the output directory as JPEG files.
    """
    output_dir = Path(output)
    output_dir.mkdir(parents=True, exist_ok=True)
    config, logger, session = _setup_runtime(output_dir, verbose)

    result = _run_extraction(session, video, start, end, fps, gender)
    paths = save_frames(result.frames, output_dir, prefix="frame", logger=logger)
    click.secho(f"\n✅ Saved {len(paths)} frames to {output_dir}", fg="green", bold=True)


@cli.command()
@_segment_options
@click.option("--select", "-s", "selected", multiple=True, type=float, help="Timestamp of a frame to enhance (repeatable).")
@click.option("--colorize/--no-colorize", default=True, show_default=True, help="Colorize or enrich colors.")
def enhance(video, output, start, end, fps, gender, verbose, selected, colorize):
    """
    Extract face frames, then enhance a selection of them.

    Without --select the first frames up to the selection limit are used.
    The enhanced images are written to a zip archive in the output directory.
    """
    output_dir = Path(output)
    output_dir.mkdir(parents=True, exist_ok=True)
    config, logger, session = _setup_runtime(output_dir, verbose)

    result = _run_extraction(session, video, start, end, fps, gender)
    if not result.frames:
        click.secho("❌ No frames found to enhance.", fg="red")
        sys.exit(1)

    if selected:
        by_time = {round(f.timestamp, 3): f.timestamp for f in result.frames}
        for ts in selected:
            match = by_time.get(round(ts, 3))
            if match is None:
                click.secho(f"⚠️ No accepted frame at {ts:.2f}s, skipping.", fg="yellow")
                continue
            try:
                if match not in session.selection:
                    session.toggle_frame(match)
            except FrameEnhancerError as e:
                click.secho(f"⚠️ {e}", fg="yellow")
                break
    else:
        session.select_all()
    if not len(session.selection):
        click.secho("❌ No frames selected.", fg="red")
        sys.exit(1)

    click.secho("\n✨ ENHANCEMENT", fg="cyan", bold=True)
    click.echo(f"   Frames: {', '.join(f'{ts:.2f}s' for ts in sorted(session.selection))}")
    click.echo(f"   Colorize: {'yes' if colorize else 'no'}")
    enhanced = session.start_enhancement(EnhancementEvent(colorize=colorize))
    click.echo()
    click.secho(f"✓ {enhanced.message}", fg="green")

    if not enhanced.images:
        click.secho("⚠️ Nothing to export.", fg="yellow")
        sys.exit(1)
    zip_path = export_enhanced_zip(enhanced.images, output_dir / ZIP_NAME, logger=logger)
    click.secho(f"\n✅ Wrote {len(enhanced.images)} images to {zip_path}", fg="green", bold=True)


if __name__ == "__main__":
    cli()
