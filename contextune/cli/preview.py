# =============================================================================
# contextune/cli/preview.py: CLI Preview Command
# =============================================================================
#
# Runs a recommendation preview for one user from the command line. The
# preview goes through the full hybrid pipeline (profile, rule match,
# user-playlist branch, global-catalog branch, diversity selection) but
# never saves a playlist record, so it can be run repeatedly.
#
# Typical usage:
#   python -m contextune.cli.preview --user-id me
#   python -m contextune.cli.preview --user-id me --time-of-day night --weather rainy
#   python -m contextune.cli.preview --user-id me --json --seed 7
#
# Context:
#   - With no --time-of-day, a live context is captured from the clock and
#     (given --lat/--lon and an OpenWeatherMap key) the current weather.
#   - With --time-of-day, the context is built from the flags as given.
#
# The --quiet flag (auto-enabled with --json) sends all log output to
# stderr at WARNING+ level so stdout carries only the preview.
# =============================================================================

"""Standalone CLI for previewing a context-aware playlist.

Usage::

    python -m contextune.cli.preview --user-id me
    python -m contextune.cli.preview --user-id me --time-of-day morning --weather sunny
    python -m contextune.cli.preview --user-id me --json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import random
import sys

from contextune.config.settings import Settings
from contextune.models.context import (
    Context,
    GeoLocation,
    TimeOfDay,
    Weather,
    WeatherCondition,
)
from contextune.models.recommendation import (
    RecommendationFailure,
    RecommendationResult,
)
from contextune.utils.confidence import confidence_to_level

# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def _format_text_output(result: RecommendationResult | RecommendationFailure) -> str:
    lines: list[str] = []
    sep = "=" * 60

    if isinstance(result, RecommendationFailure):
        lines.append(sep)
        lines.append("  contextune: Recommendation failed")
        lines.append(sep)
        lines.append(f"  Reason: {result.reason} ({result.error_type})")
        if result.alternatives:
            lines.append("")
            lines.append("  Try instead:")
            for alt in result.alternatives:
                target = alt.url or alt.query or ""
                lines.append(f"    - {alt.title}: {target}")
        return "\n".join(lines)

    lines.append(sep)
    lines.append(f"  {result.playlist_name}")
    lines.append(sep)
    lines.append(f"  {result.playlist_description}")
    lines.append("")
    level = confidence_to_level(result.confidence).value
    lines.append(f"Confidence: {result.confidence:.0%} ({level})")
    lines.append(
        f"Artists: {result.diversity.artist_count}  |  Genres: {result.diversity.genre_count}"
        f"  |  Processing: {result.processing_ms:.0f} ms"
    )
    if result.applied_rules:
        names = [f"{r.name} ({r.match_score:.1f})" for r in result.applied_rules]
        lines.append(f"Rules: {', '.join(names)}")
    if result.degraded_branches:
        lines.append(f"Degraded: {', '.join(result.degraded_branches)}")
    lines.append("")

    for title, tracks in (
        ("FROM YOUR PLAYLISTS", result.user_tracks),
        ("FROM THE CATALOG", result.global_tracks),
    ):
        if not tracks:
            continue
        lines.append(title)
        lines.append("-" * 40)
        for position, track in enumerate(tracks, start=1):
            artist = track.primary_artist or "Unknown"
            lines.append(f"  {position:>2}. {track.name} — {artist}  [{track.score:.2f}]")
            if track.reasons:
                lines.append(f"      {', '.join(track.reasons)}")
        lines.append("")

    if result.tags:
        lines.append(f"Tags: {', '.join(result.tags)}")
    return "\n".join(lines)


def _format_json_output(result: RecommendationResult | RecommendationFailure) -> str:
    output = result.model_dump(mode="json")
    output["ok"] = isinstance(result, RecommendationResult)
    return json.dumps(output, indent=2, default=str)


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


def _suppress_logs() -> None:
    """Send structlog and stdlib logging to stderr at WARNING+ level."""
    from contextune.utils.logging import configure_logging

    configure_logging(log_level="WARNING", stream=sys.stderr)


def _context_from_args(args: argparse.Namespace) -> Context | None:
    if not args.time_of_day:
        return None
    return Context(
        time_of_day=TimeOfDay(args.time_of_day),
        weather=Weather(
            condition=WeatherCondition(args.weather),
            temperature=args.temperature,
        ),
        location=GeoLocation(
            city=args.city,
            country=args.country,
            latitude=args.lat,
            longitude=args.lon,
        ),
    )


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    # Deferred import: building the components reads rule files, which is
    # wasted work when argument parsing fails.
    from contextune.main import default_options, run_preview

    options = default_options(
        app_settings,
        target_length=args.target_length,
        diversity_weight=args.diversity_weight,
    )
    location = None
    if args.lat is not None and args.lon is not None:
        location = GeoLocation(
            city=args.city, country=args.country, latitude=args.lat, longitude=args.lon
        )

    result = await run_preview(
        args.user_id,
        context=_context_from_args(args),
        options=options,
        location=location,
        timezone=args.timezone,
        custom_settings=app_settings,
        rng=random.Random(args.seed) if args.seed is not None else None,
    )

    if args.json_output:
        print(_format_json_output(result))
    else:
        print(_format_text_output(result))
    return 0 if isinstance(result, RecommendationResult) else 1


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m contextune.cli.preview",
        description="Preview a context-aware playlist for a user without saving it.",
    )
    parser.add_argument("--user-id", required=True, help="User to build the preview for.")
    parser.add_argument(
        "--time-of-day",
        choices=[t.value for t in TimeOfDay],
        default=None,
        help="Use a fixed context instead of capturing a live one.",
    )
    parser.add_argument(
        "--weather",
        choices=[w.value for w in WeatherCondition],
        default=WeatherCondition.UNKNOWN.value,
        help="Weather for a fixed context.",
    )
    parser.add_argument("--temperature", type=float, default=None, help="Degrees Celsius.")
    parser.add_argument("--city", default=None)
    parser.add_argument("--country", default=None)
    parser.add_argument("--lat", type=float, default=None, help="Latitude for live weather.")
    parser.add_argument("--lon", type=float, default=None, help="Longitude for live weather.")
    parser.add_argument("--timezone", default=None, help="IANA timezone, e.g. Europe/Berlin.")
    parser.add_argument(
        "--target-length", type=int, default=None, help="10-50 tracks (default from settings)."
    )
    parser.add_argument(
        "--diversity-weight", type=float, default=None, help="0.0-1.0 (default from settings)."
    )
    parser.add_argument(
        "--seed", type=int, default=None, help="Seed the playlist name template pick."
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Output the result as JSON instead of formatted text.",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress log output (useful with --json for clean stdout).",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.target_length is not None and not 10 <= args.target_length <= 50:
        parser.error("--target-length must be between 10 and 50")
    if args.diversity_weight is not None and not 0.0 <= args.diversity_weight <= 1.0:
        parser.error("--diversity-weight must be between 0.0 and 1.0")

    app_settings = Settings()
    # JSON mode implies quiet; log lines never go into JSON output.
    if args.quiet or args.json_output:
        _suppress_logs()
    else:
        from contextune.main import configure_app_logging

        configure_app_logging(app_settings)

    exit_code = asyncio.run(_run(args, app_settings))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
