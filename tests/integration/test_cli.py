import json

import pytest
from typer.testing import CliRunner

import concierge.cli as cli
from concierge.retrieval.vector_store import InMemoryVectorStore
from fakes import HashingEmbedder, ScriptedLLM, make_context, make_settings

RECORDS = [
    {"id": "regatta-chunk-0", "text": "Cowes Week regatta", "type": "Event",
     "source": "admin/regatta", "start_date": "2025-08-02", "end_date": "2025-08-09"},
    {"id": "market-chunk-0", "text": "Newport Christmas market", "type": "Event",
     "source": "admin/market", "start_date": "2025-12-06", "end_date": "2025-12-07"},
    {"id": "albion-chunk-0", "text": "The Albion Hotel on Freshwater Bay", "type": "Accommodation",
     "source": "admin/albion-hotel"},
]


@pytest.fixture
def records_file(tmp_path):
    path = tmp_path / "records.jsonl"
    path.write_text("\n".join(json.dumps(record) for record in RECORDS) + "\n\n", encoding="utf-8")
    return path


@pytest.fixture
def vault(tmp_path, monkeypatch):
    """Point every CLI command at a fresh context over one snapshot file."""

    path = tmp_path / "vault.json"
    settings = make_settings(vector_store_path=path)

    def build(current):
        return make_context(
            ScriptedLLM(),
            store=InMemoryVectorStore(current.vector_store_path),
            embedder=HashingEmbedder(dimension=32),
            settings=current,
        )

    monkeypatch.setattr(cli, "get_settings", lambda: settings)
    monkeypatch.setattr(cli, "configure_logging", lambda current: None)
    monkeypatch.setattr(cli, "build_context", build)
    return path


def test_loaded_records_are_pruned_by_a_later_command(records_file, vault) -> None:
    runner = CliRunner()

    loaded = runner.invoke(cli.app, ["load-records", str(records_file)])
    pruned = runner.invoke(cli.app, ["prune-events", "--today", "2025-10-30"])

    assert loaded.exit_code == 0, loaded.output
    assert "Loaded 3 records into the memory store" in loaded.output
    assert pruned.exit_code == 0, pruned.output
    assert "Pruned 1 expired events" in pruned.output
    assert len(InMemoryVectorStore(vault)) == 2


def test_ask_answers_from_loaded_records(records_file, vault) -> None:
    runner = CliRunner()
    runner.invoke(cli.app, ["load-records", str(records_file)])

    result = runner.invoke(cli.app, ["ask", "the albion hotel"])

    assert result.exit_code == 0, result.output
    assert "Here is what the DataVault holds." in result.output
    assert "(admin/albion-hotel)" in result.output


def test_load_records_reports_bad_lines(tmp_path, vault) -> None:
    path = tmp_path / "broken.jsonl"
    path.write_text('{"id": "a", "text": "ok"}\n{not json\n', encoding="utf-8")

    result = CliRunner().invoke(cli.app, ["load-records", str(path)])

    assert result.exit_code != 0
    assert not vault.exists()


def test_prune_events_rejects_bad_date(vault) -> None:
    result = CliRunner().invoke(cli.app, ["prune-events", "--today", "soon"])

    assert result.exit_code != 0
