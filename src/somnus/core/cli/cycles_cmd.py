"""somnus distribute — synthesize a cycle timeline from stage totals."""

from __future__ import annotations

from datetime import UTC, datetime

import click


@click.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--seed", type=int, default=None, help="Override the document's seed.")
@click.option("--user-id", default=None, help="Emit persistable timeline rows for this user.")
@click.pass_obj
def distribute(settings, path: str, seed: int | None, user_id: str | None) -> None:
    """Distribute the stage buckets in PATH across sleep cycles.

    PATH holds 'start_time', 'end_time', optional bucket minutes
    ('deep_minutes', 'rem_minutes', 'light_minutes', 'awake_minutes') and an
    optional 'profile' with date_of_birth, sex and activity_level.
    """
    from somnus.core.cli.common import echo_json, load_document, require_mapping
    from somnus.core.exceptions import SomnusError
    from somnus.cycles import CycleDistributorInput, distribute_sleep_cycles, to_timeline_rows
    from somnus.health import estimate_physiology
    from somnus.hypnogram.models import parse_timestamp

    try:
        document = require_mapping(load_document(path), path)
        profile = document.get("profile") or {}
        physiology = estimate_physiology(
            date_of_birth=profile.get("date_of_birth"),
            sex=profile.get("sex"),
            activity_level=profile.get("activity_level"),
        )
        data = CycleDistributorInput(
            start_time=parse_timestamp(document.get("start_time"), "start_time"),
            end_time=parse_timestamp(document.get("end_time"), "end_time"),
            session_id=str(document.get("session_id", "session")),
            deep_minutes=document.get("deep_minutes"),
            rem_minutes=document.get("rem_minutes"),
            light_minutes=document.get("light_minutes"),
            awake_minutes=document.get("awake_minutes"),
            age=profile.get("age"),
            physiology=physiology,
            personal_deep_ratio=document.get("personal_deep_ratio"),
            personal_rem_ratio=document.get("personal_rem_ratio"),
            history_night_count=int(document.get("history_night_count", 0)),
            seed=seed if seed is not None else int(document.get("seed", 0)),
        )
        output = distribute_sleep_cycles(data, settings=settings.distributor)
    except SomnusError as e:
        raise click.ClickException(str(e)) from e

    if user_id:
        rows = to_timeline_rows(output, data.session_id, user_id, datetime.now(UTC))
        echo_json([row.to_dict() for row in rows])
    else:
        echo_json(output.to_dict())
