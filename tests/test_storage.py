import pytest

from callsense.data.models import AnalysisResult, CallStats, CallStatus
from callsense.data.storage import CallStore, DuplicateAnalysisError


@pytest.fixture
def store(tmp_path):
    calls = CallStore(tmp_path / "db" / "callsense.db")
    calls.initialize()
    return calls


def test_create_and_fetch_call(store) -> None:
    created = store.create_call("owner-1", "owner-1/abc.wav", "demo.wav", display_name="Demo")

    fetched = store.fetch_call(created.id)

    assert fetched is not None
    assert fetched.status is CallStatus.PENDING
    assert fetched.file_path == "owner-1/abc.wav"
    assert fetched.display_name == "Demo"
    assert store.fetch_call("missing") is None


def test_list_calls_filters_by_owner(store) -> None:
    first = store.create_call("owner-1", "owner-1/a.wav", "a.wav")
    second = store.create_call("owner-1", "owner-1/b.wav", "b.wav")
    store.create_call("owner-2", "owner-2/c.wav", "c.wav")

    owned = {call.id for call in store.list_calls("owner-1")}

    assert owned == {first.id, second.id}
    assert len(store.list_calls()) == 3


def test_update_status(store) -> None:
    call = store.create_call("owner-1", "owner-1/a.wav", "a.wav")

    store.update_status(call.id, CallStatus.PROCESSING)

    assert store.fetch_call(call.id).status is CallStatus.PROCESSING
    with pytest.raises(KeyError):
        store.update_status("missing", CallStatus.FAILED)


def test_analysis_round_trip_keeps_json_columns(store) -> None:
    call = store.create_call("owner-1", "owner-1/a.wav", "a.wav")
    result = AnalysisResult(
        outcome="won",
        outcome_score=80,
        executive_summary="Good call",
        key_moments=[{"timestamp": "00:42", "description": "Price anchor"}],
        pitch_framework_analysis={"frame_control": {"score": 7}},
    )

    saved = store.save_analysis(call.id, "Alice: hi", result)
    loaded = store.fetch_analysis(call.id)

    assert saved.id is not None
    assert loaded is not None
    assert loaded.owner == "owner-1"
    assert loaded.transcript == "Alice: hi"
    assert loaded.outcome == "won"
    assert loaded.key_moments == [{"timestamp": "00:42", "description": "Price anchor"}]
    assert loaded.pitch_framework_analysis == {"frame_control": {"score": 7}}
    assert loaded.client_objections == []


def test_analysis_is_written_once_per_call(store) -> None:
    call = store.create_call("owner-1", "owner-1/a.wav", "a.wav")
    store.save_analysis(call.id, "first", AnalysisResult())

    with pytest.raises(DuplicateAnalysisError):
        store.save_analysis(call.id, "second", AnalysisResult())

    assert store.fetch_analysis(call.id).transcript == "first"


def test_analysis_for_unknown_call_is_rejected(store) -> None:
    with pytest.raises(KeyError):
        store.save_analysis("missing", "text", AnalysisResult())

    assert store.fetch_analysis("missing") is None


def test_stored_score_matches_the_parsed_score(store) -> None:
    call = store.create_call("owner-1", "owner-1/a.wav", "a.wav")
    result = AnalysisResult.model_validate({"outcome": "won", "outcome_score": "150"})

    store.save_analysis(call.id, "text", result)

    assert result.outcome_score == 100
    assert store.fetch_analysis(call.id).outcome_score == result.outcome_score


def test_summarize_counts_outcomes_and_rounds_the_average(store) -> None:
    for index, (outcome, score) in enumerate([("won", 80), ("lost", 35), ("won", 70), ("unclear", 50)]):
        call = store.create_call("owner-1", f"owner-1/{index}.wav", f"{index}.wav")
        store.save_analysis(call.id, "text", AnalysisResult(outcome=outcome, outcome_score=score))
    store.create_call("owner-1", "owner-1/pending.wav", "pending.wav")
    other = store.create_call("owner-2", "owner-2/x.wav", "x.wav")
    store.save_analysis(other.id, "text", AnalysisResult(outcome="lost", outcome_score=10))

    stats = store.summarize("owner-1")

    # (80 + 35 + 70 + 50) / 4 = 58.75
    assert stats == CallStats(total_calls=5, won=2, lost=1, average_score=59)
    assert store.summarize() == CallStats(total_calls=6, won=2, lost=2, average_score=49)


def test_summarize_rounds_half_up(store) -> None:
    for index, score in enumerate([50, 51]):
        call = store.create_call("owner-1", f"owner-1/{index}.wav", f"{index}.wav")
        store.save_analysis(call.id, "text", AnalysisResult(outcome_score=score))

    assert store.summarize().average_score == 51


def test_summarize_without_calls_is_all_zero(store) -> None:
    assert store.summarize() == CallStats()
    assert store.summarize("nobody") == CallStats()
