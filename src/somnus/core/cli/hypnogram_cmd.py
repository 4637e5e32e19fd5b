"""somnus coalesce / somnus geometry — clean a phase list and lay it out."""

from __future__ import annotations

import click


@click.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
def coalesce(settings, path: str) -> None:
    """Merge and clean the phases in PATH (a list, or a mapping with 'phases')."""
    from somnus.core.cli.common import echo_json, load_document
    from somnus.core.exceptions import SomnusError
    from somnus.hypnogram import coalesce_phases

    try:
        document = load_document(path)
        rows = document.get("phases", []) if isinstance(document, dict) else document or []
        phases = coalesce_phases(rows, settings.coalescer)
    except SomnusError as e:
        raise click.ClickException(str(e)) from e
    echo_json([phase.to_row() for phase in phases])


@click.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--width", type=float, default=360.0, show_default=True, help="Chart width in pixels.")
@click.option("--height", type=float, default=200.0, show_default=True, help="Chart height in pixels.")
@click.pass_obj
def geometry(settings, path: str, width: float, height: float) -> None:
    """Build chart geometry for the session in PATH.

    PATH holds 'session_start', 'session_end' and 'phases'.
    """
    from somnus.core.cli.common import echo_json, load_document, require_mapping
    from somnus.core.exceptions import SomnusError
    from somnus.hypnogram import build_hypnogram_geometry
    from somnus.hypnogram.models import parse_timestamp

    try:
        document = require_mapping(load_document(path), path)
        result = build_hypnogram_geometry(
            document.get("phases") or [],
            parse_timestamp(document.get("session_start"), "session_start"),
            parse_timestamp(document.get("session_end"), "session_end"),
            width,
            height,
            settings=settings.geometry,
            coalescer_settings=settings.coalescer,
        )
    except SomnusError as e:
        raise click.ClickException(str(e)) from e
    echo_json(result.to_dict())
