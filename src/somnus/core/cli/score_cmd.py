"""somnus score — score one night against history and profile."""

from __future__ import annotations

import click


@click.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
def score(settings, path: str) -> None:
    """Score the night in PATH.

    PATH holds a 'record', optional 'history' (list of records) and an
    optional 'profile' (age, chronotype, sleep_goal_minutes).
    """
    from somnus.core.cli.common import echo_json, load_document, require_mapping
    from somnus.core.exceptions import DataProcessingError, SomnusError
    from somnus.health import SleepRecord, UserProfile
    from somnus.scoring import calculate_sleep_score

    try:
        document = require_mapping(load_document(path), path)
        if not isinstance(document.get("record"), dict):
            raise DataProcessingError(f"{path} has no 'record' mapping")
        record = SleepRecord.from_dict(document["record"])
        history = [SleepRecord.from_dict(item) for item in document.get("history") or []]
        profile = UserProfile.from_dict(document.get("profile") or {})
        breakdown = calculate_sleep_score(record, history, profile, settings=settings.scoring)
    except SomnusError as e:
        raise click.ClickException(str(e)) from e
    echo_json(breakdown.to_dict())
