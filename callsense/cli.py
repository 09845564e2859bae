"""Typer CLI entry point for callsense."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, List, Optional

import typer

from .config import (
    EnvironmentSettingError,
    Settings,
    clear_environment_setting,
    get_settings,
    list_environment_settings,
    update_environment_setting,
)
from .core.audio.segmenter import SegmentationOptions, prepare
from .core.pipeline.jobs import JobScheduler, JobStatus, TranscriptionJob
from .core.pipeline.orchestrator import TranscriptionOrchestrator
from .core.pipeline.upload import submit_recording
from .data.models import CallStatus
from .data.segments import FileSegmentStore
from .data.storage import CallStore
from .logging import configure_logging, get_logger
from .services.analysis.client import AnalysisClient
from .services.errors import CallsenseError
from .services.factory import (
    ServiceConfigurationError,
    resolve_analysis_provider,
    resolve_transcription_provider,
)
from .services.transcription.client import TranscriptionClient

app = typer.Typer(help="callsense sales call analyser")
config_app = typer.Typer(help="Inspect and override environment settings")
app.add_typer(config_app, name="config")
LOGGER = get_logger(__name__)


def _open_store(settings: Settings) -> CallStore:
    store = CallStore(settings.database_path)
    store.initialize()
    return store


def _build_orchestrator(
    settings: Settings,
    calls: CallStore,
    transcription_provider: Optional[str],
    analysis_provider: Optional[str],
) -> TranscriptionOrchestrator:
    try:
        transcriber = resolve_transcription_provider(transcription_provider, settings)
        analyser = resolve_analysis_provider(analysis_provider, settings)
    except (ServiceConfigurationError, RuntimeError) as exc:
        raise typer.BadParameter(str(exc)) from exc

    return TranscriptionOrchestrator(
        segment_store=FileSegmentStore(settings.segments_dir),
        transcription=TranscriptionClient(transcriber),
        analysis=AnalysisClient(analyser),
        calls=calls,
    )


def _format_job(job: TranscriptionJob) -> str:
    if job.status is JobStatus.TRANSCRIBING and job.total_segments:
        detail = f"segment {job.current_segment}/{job.total_segments}"
    elif job.status is JobStatus.ERROR:
        detail = job.error or "An error occurred"
    else:
        detail = job.status.value
    return f"[{job.progress:3d}%] {job.file_name}: {detail}"


@app.command("prepare")
def prepare_command(
    audio: Path = typer.Argument(..., exists=True, dir_okay=False, help="Recording to segment"),
    out: Path = typer.Option(Path("segments"), help="Directory for the WAV segments"),
    sample_rate: Optional[int] = typer.Option(None, help="Override sample rate"),
    target_bytes: Optional[int] = typer.Option(None, help="Override the per-segment byte budget"),
) -> None:
    """Split a recording into provider-safe WAV segments without uploading it."""

    settings = get_settings()
    configure_logging(settings.log_level)
    options = SegmentationOptions.from_settings(settings)
    if sample_rate:
        options.sample_rate = sample_rate
    if target_bytes:
        options.target_segment_bytes = target_bytes

    try:
        result = prepare(audio.read_bytes(), options)
    except (CallsenseError, ValueError) as exc:
        raise typer.BadParameter(str(exc)) from exc

    out.mkdir(parents=True, exist_ok=True)
    for segment in result.segments:
        (out / segment.name).write_bytes(segment.data)
        typer.echo(f"  {segment.name}: {segment.duration:.1f}s, {segment.size} bytes")
    typer.echo(
        f"{result.kind}: {len(result.segments)} segment(s) of up to {result.chunk_seconds}s "
        f"({result.duration:.1f}s total) written to {out}"
    )


@app.command()
def analyze(
    audio: Path = typer.Argument(..., exists=True, dir_okay=False, help="Recording to analyse"),
    name: Optional[str] = typer.Option(None, help="Display name, e.g. the client's name"),
    owner: Optional[str] = typer.Option(None, help="Owner id; defaults to CALLSENSE_OWNER_ID"),
    transcription_provider: Optional[str] = typer.Option(None, help="chat/gemini/dummy"),
    analysis_provider: Optional[str] = typer.Option(None, help="chat/gemini/dummy"),
) -> None:
    """Upload a recording, transcribe it and score the call."""

    settings = get_settings()
    configure_logging(settings.log_level)
    calls = _open_store(settings)
    orchestrator = _build_orchestrator(settings, calls, transcription_provider, analysis_provider)

    async def _run() -> str:
        scheduler = JobScheduler(orchestrator)
        scheduler.subscribe(lambda job: typer.echo(_format_job(job)))
        try:
            submission = await submit_recording(
                scheduler,
                orchestrator.segment_store,
                calls,
                audio.read_bytes(),
                audio.name,
                owner_id=owner or settings.owner_id,
                display_name=name,
            )
            await scheduler.wait(submission.job_id)
            return submission.call.id
        finally:
            await orchestrator.transcription.provider.aclose()
            await orchestrator.analysis.provider.aclose()

    try:
        call_id = asyncio.run(_run())
    except (CallsenseError, ValueError) as exc:
        raise typer.BadParameter(str(exc)) from exc

    call = calls.fetch_call(call_id)
    if call is None or call.status is not CallStatus.COMPLETED:
        LOGGER.error("Call %s did not complete", call_id)
        typer.echo(f"Call {call_id} failed", err=True)
        raise typer.Exit(code=1)
    _print_analysis(calls, call_id)


@app.command("calls")
def list_calls(owner: Optional[str] = typer.Option(None, help="Only calls of this owner")) -> None:
    """List recorded calls."""

    calls = _open_store(get_settings())
    for call in calls.list_calls(owner):
        label = call.display_name or call.file_name
        typer.echo(f"{call.id}  {call.status.value:<10}  {label}")


@app.command()
def stats(owner: Optional[str] = typer.Option(None, help="Only calls of this owner")) -> None:
    """Print headline numbers for the stored calls."""

    summary = _open_store(get_settings()).summarize(owner)
    typer.echo(f"Total calls: {summary.total_calls}")
    typer.echo(f"Won: {summary.won}")
    typer.echo(f"Lost: {summary.lost}")
    typer.echo(f"Average score: {summary.average_score}/100")


@app.command()
def show(call_id: str = typer.Argument(..., help="Call id")) -> None:
    """Print the stored analysis for a call."""

    calls = _open_store(get_settings())
    if calls.fetch_call(call_id) is None:
        raise typer.BadParameter(f"Unknown call: {call_id}")
    _print_analysis(calls, call_id)


def _print_analysis(calls: CallStore, call_id: str) -> None:
    analysis = calls.fetch_analysis(call_id)
    if analysis is None:
        typer.echo("No analysis stored for this call.")
        return
    typer.echo(f"Outcome: {analysis.outcome} ({analysis.outcome_score}/100)")
    if analysis.executive_summary:
        typer.echo(analysis.executive_summary)

    _echo_section("Key strengths", analysis.key_strengths, _strength_lines)
    _echo_section("Areas for improvement", analysis.areas_for_improvement, _improvement_lines)
    _echo_section("Missed opportunities", analysis.missed_opportunities, _missed_lines)
    _echo_section("Cialdini principles", analysis.cialdini_principles, _principle_lines)
    _echo_section(
        "Pitch framework",
        list((analysis.pitch_framework_analysis or {}).items()),
        _pitch_lines,
    )
    _echo_section("Persuasion techniques", analysis.persuasion_techniques, _technique_lines)
    _echo_section("Key moments", analysis.key_moments, _moment_lines)
    _echo_section("Client objections", analysis.client_objections, _objection_lines)
    _echo_section("Revival strategies", analysis.revival_strategies, _revival_lines)
    if analysis.follow_up_script:
        typer.echo("\nFollow-up script:")
        for line in analysis.follow_up_script.splitlines():
            typer.echo(f"  {line}")


def _echo_section(title: str, items: List[Any], render: Callable[[Any], List[str]]) -> None:
    if not items:
        return
    typer.echo(f"\n{title}:")
    for item in items:
        for line in render(_Item(item) if isinstance(item, dict) else item):
            typer.echo(line)


class _Item(dict):
    """Analysis entries come from a model, so any key may be missing."""

    def __missing__(self, key: str) -> str:
        return ""


def _detail(label: str, value: Any) -> List[str]:
    return [f"      {label}: {value}"] if value not in (None, "") else []


def _used(flag: Any) -> str:
    return "used" if flag else "not used"


def _strength_lines(item: _Item) -> List[str]:
    quote = [f'      "{item["quote"]}"'] if item["quote"] else []
    return [f"  + {item['technique']}: {item['description']}", *quote]


def _improvement_lines(item: _Item) -> List[str]:
    return [
        f"  - {item['technique']}: {item['description']}",
        *_detail("Suggestion", item["suggestion"]),
    ]


def _missed_lines(item: _Item) -> List[str]:
    return [f"  ! {item['moment']}: {item['opportunity']}", *_detail("Framework", item["framework"])]


def _principle_lines(item: _Item) -> List[str]:
    return [
        f"  {item['principle']} ({_used(item['used'])}, {item['effectiveness'] or 0}/10)",
        *_detail("Notes", item["notes"]),
    ]


def _pitch_lines(entry) -> List[str]:
    name, value = entry
    value = value if isinstance(value, dict) else {"score": value}
    label = name.replace("_", " ").capitalize()
    return [f"  {label}: {value.get('score', 0)}/10", *_detail("Notes", value.get("notes"))]


def _technique_lines(item: _Item) -> List[str]:
    return [
        f"  {item['technique']} ({_used(item['used'])}, {item['effectiveness'] or 0}/10)",
        *_detail("Example", item["example"]),
    ]


def _moment_lines(item: _Item) -> List[str]:
    stamp = f"[{item['timestamp']}] " if item["timestamp"] else ""
    impact = f" ({item['impact']})" if item["impact"] else ""
    quote = [f'      "{item["quote"]}"'] if item["quote"] else []
    return [f"  {stamp}{item['description']}{impact}", *quote]


def _objection_lines(item: _Item) -> List[str]:
    handled = "handled" if item["handled"] else "not handled"
    return [
        f"  {item['objection']} ({handled})",
        *_detail("Response given", item["response_given"]),
        *_detail("Better response", item["better_response"]),
    ]


def _revival_lines(item: _Item) -> List[str]:
    timing = f" ({item['timing']})" if item["timing"] else ""
    return [
        f"  {item['strategy']}{timing}",
        *_detail("Script", item["script"]),
        *_detail("Why", item["rationale"]),
    ]


@config_app.command("list")
def config_list() -> None:
    """Show every setting and its environment variable."""

    for entry in list_environment_settings():
        typer.echo(f"{entry.env_name}={entry.display_value}")


@config_app.command("set")
def config_set(field: str, value: str) -> None:
    """Persist an override to the .env file."""

    try:
        update_environment_setting(field, value)
    except EnvironmentSettingError as exc:
        raise typer.BadParameter(str(exc)) from exc
    typer.echo(f"{field} updated")


@config_app.command("unset")
def config_unset(field: str) -> None:
    """Remove an override from the .env file."""

    try:
        clear_environment_setting(field)
    except EnvironmentSettingError as exc:
        raise typer.BadParameter(str(exc)) from exc
    typer.echo(f"{field} cleared")


if __name__ == "__main__":  # pragma: no cover
    app()
