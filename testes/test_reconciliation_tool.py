import json

import pytest

import main as cli
from models.catalog import Mapping, MappingEntry
from src.config import load_config
from src.reconciliation_tool import AssetReconciliationTool
from src.utils.errors import DirectoryNotFound, MappingNotFound
from src.utils.mapping_store import load_mapping, save_mapping


@pytest.fixture
def project(workdir):
    images = workdir / "public"
    images.mkdir()
    (images / "oslo-sofa.jpg").write_bytes(b"jpeg-bytes")
    (images / "unrelated-rug.jpg").write_bytes(b"jpeg")

    entries = workdir / "uniform-data" / "entry"
    entries.mkdir(parents=True)
    (entries / "e1.yaml").write_text("entry:\n  _id: e1\n  _name: Oslo Sofa\n  type: product\n", encoding="utf-8")
    (entries / "e2.yaml").write_text("entry:\n  _id: e2\n  _name: Bergen Chair\n  type: product\n", encoding="utf-8")

    assets = workdir / "uniform-data" / "asset"
    assets.mkdir(parents=True)
    (assets / "a1.yaml").write_text(
        "asset:\n  _id: a1\n  fields:\n    title:\n      value: oslo-sofa.jpg\n", encoding="utf-8"
    )
    return workdir


def make_config(**paths):
    config = load_config(None, {"UNIFORM_API_KEY": "uf_key", "UNIFORM_PROJECT_ID": "proj-1"}, load_env_files=False)
    config.paths.images_dir = "public"
    config.paths.entry_mirror_dir = "uniform-data/entry"
    for key, value in paths.items():
        setattr(config.paths, key, value)
    return config


def test_scan_writes_mapping_from_entry_mirror(project):
    tool = AssetReconciliationTool(make_config())

    mapping = tool.scan()

    assert [(e.filename, e.record_id) for e in mapping.images] == [("oslo-sofa.jpg", "e1"), ("unrelated-rug.jpg", None)]
    on_disk = json.loads((project / "image-mapping.json").read_text(encoding="utf-8"))
    assert on_disk["images"][0]["recordId"] == "e1"
    assert on_disk["images"][0]["suggestedRecordName"] == "Oslo Sofa"
    assert (project / "reports" / "reconciliation" / "reconciliation.log").exists()


def test_scan_missing_images_directory(project):
    tool = AssetReconciliationTool(make_config(images_dir="nowhere"))
    with pytest.raises(DirectoryNotFound):
        tool.scan()


def test_rescan_can_keep_manual_assignments(project):
    tool = AssetReconciliationTool(make_config())
    mapping = tool.scan()
    edited = [e.model_copy(update={"record_id": "e2", "suggested_record_name": "Bergen Chair"}) if e.record_id else e for e in mapping.images]
    save_mapping(Mapping(images=edited), "image-mapping.json")

    assert tool.scan(keep_manual=True).images[0].record_id == "e2"
    assert tool.scan().images[0].record_id == "e1"


def test_summarize_requires_mapping(project):
    with pytest.raises(MappingNotFound):
        AssetReconciliationTool(make_config()).summarize()


def entry_handler(puts):
    def handler(method, url, kw):
        if method == "GET" and url.endswith("/assets"):
            return 200, {"results": []}
        if method == "GET":
            return 200, {"entry": {"_id": "e1", "fields": {"name": {"type": "text", "value": "Oslo Sofa"}}}}
        puts.append(kw["json"])
        return 200, {}

    return handler


def test_apply_updates_entries_and_writes_csv(project, make_api, capsys):
    puts = []
    api, session = make_api(entry_handler(puts))
    tool = AssetReconciliationTool(make_config(), api=api)
    tool.scan()

    report = tool.apply()

    assert [(i.record_id, i.status, i.asset_id) for i in report.items] == [("e1", "updated", "a1")]
    assert report.unmatched == ["unrelated-rug.jpg"]
    assert len(puts) == 1
    assert (project / "reports" / "reconciliation" / "report.csv").exists()
    assert "RECONCILIATION SUMMARY" in capsys.readouterr().out


def test_apply_dry_run_writes_instructions_only(project, make_api):
    puts = []
    api, session = make_api(entry_handler(puts))
    tool = AssetReconciliationTool(make_config(), api=api)
    tool.scan()

    report = tool.apply(dry_run=True)

    assert report.items[0].status == "planned"
    assert puts == []
    doc = json.loads((project / "update-instructions.json").read_text(encoding="utf-8"))
    assert doc["updates"][0]["entryId"] == "e1"
    assert doc["updates"][0]["assetId"] == "a1"


def test_cli_scan_then_summarize(project, monkeypatch, capsys):
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    args = ["--config", "none.json", "--images-dir", "public", "--mapping-file", "out/mapping.json"]

    assert cli.main(args + ["scan", "--entry-mirror", "uniform-data/entry"]) == 0
    assert load_mapping(str(project / "out" / "mapping.json")).images[0].record_id == "e1"

    assert cli.main(args + ["summarize"]) == 0
    assert "IMAGE MAPPING SUMMARY" in capsys.readouterr().out


def test_cli_fatal_errors_exit_non_zero(project, monkeypatch, capsys):
    monkeypatch.delenv("UNIFORM_API_KEY", raising=False)
    monkeypatch.delenv("UNIFORM_PROJECT_ID", raising=False)

    assert cli.main(["--config", "none.json", "--mapping-file", "missing.json", "summarize"]) == 1
    assert cli.main(["--config", "none.json", "check"]) == 1
    assert "UNIFORM_API_KEY" in capsys.readouterr().err


def test_cli_no_upload_flag():
    assert cli.parse_args(["apply"]).upload is None
    assert cli.parse_args(["apply", "--no-upload"]).upload is False
    assert cli.parse_args(["apply", "--dry-run", "--strict-fetch"]).strict_fetch is True


def test_pre_flight_check_reports_working_endpoint(project, make_api):
    api, session = make_api(
        lambda method, url, kw: (200, {"results": [{"entry": {"_id": "e1", "_name": "Oslo Sofa", "type": "product"}}]})
    )
    result = AssetReconciliationTool(make_config(), api=api).check()
    assert result == {"entries_url": "https://uniform.app/api/v1/projects/proj-1/entries", "records": "1"}


def test_pre_flight_check_invalid_key(project, make_api):
    from src.utils.pre_flight_checks import PreFlightCheckError

    api, session = make_api(lambda method, url, kw: (401, "unauthorized"))
    with pytest.raises(PreFlightCheckError, match="invalid"):
        AssetReconciliationTool(make_config(), api=api).check()
