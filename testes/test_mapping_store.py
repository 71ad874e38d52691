import json

import pytest

from models.catalog import Mapping, MappingEntry
from src.utils.errors import MappingInvalid, MappingNotFound
from src.utils.mapping_store import load_mapping, preserve_manual_edits, save_mapping


def entry(filename, record_id=None, name=None, method=None, confidence=None):
    return MappingEntry(
        filename=filename,
        path=f"/imgs/{filename}",
        size_bytes=2048,
        record_id=record_id,
        suggested_record_name=name,
        method=method,
        confidence=confidence,
    )


def test_saved_document_uses_camel_case_keys(tmp_path):
    path = tmp_path / "out" / "image-mapping.json"
    mapping = Mapping(images=[entry("oslo-sofa.jpg", "e1", "Oslo Sofa", "keyword", 1.0), entry("rug.jpg")])

    save_mapping(mapping, str(path))

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["instructions"][0].startswith("1.")
    first = data["images"][0]
    assert first == {
        "filename": "oslo-sofa.jpg",
        "path": "/imgs/oslo-sofa.jpg",
        "sizeBytes": 2048,
        "suggestedRecordName": "Oslo Sofa",
        "recordId": "e1",
        "confidence": 1.0,
        "method": "keyword",
    }
    assert data["images"][1]["recordId"] is None
    assert not (tmp_path / "out" / "image-mapping.json.tmp").exists()


def test_save_then_load_keeps_entries(tmp_path):
    path = str(tmp_path / "image-mapping.json")
    mapping = Mapping(images=[entry("oslo-sofa.jpg", "e1", "Oslo Sofa", "semantic", 0.8), entry("rug.jpg")])
    save_mapping(mapping, path)

    loaded = load_mapping(path)
    assert loaded == mapping
    assert [e.filename for e in loaded.matched] == ["oslo-sofa.jpg"]
    assert [e.filename for e in loaded.unmatched] == ["rug.jpg"]


def test_load_accepts_legacy_keys_and_hand_edits(tmp_path):
    path = tmp_path / "image-mapping.json"
    path.write_text(
        json.dumps(
            {
                "images": [
                    {"filename": "a.jpg", "path": "/imgs/a.jpg", "size": 10, "suggestedProduct": "Oslo Sofa", "entryId": "e1"},
                    {"filename": "b.jpg", "path": "/imgs/b.jpg", "sizeBytes": 5, "recordId": "  "},
                ],
                "instructions": [],
            }
        ),
        encoding="utf-8",
    )

    mapping = load_mapping(str(path))
    first, second = mapping.images
    assert first.size_bytes == 10
    assert first.suggested_record_name == "Oslo Sofa"
    assert first.record_id == "e1"
    assert second.record_id is None


def test_load_missing_file(tmp_path):
    with pytest.raises(MappingNotFound) as info:
        load_mapping(str(tmp_path / "image-mapping.json"))
    assert "scan" in str(info.value)


@pytest.mark.parametrize("content", ["{not json", '["a", "b"]', '{"images": [{"path": "/x.jpg"}]}'])
def test_load_rejects_malformed_files(tmp_path, content):
    path = tmp_path / "image-mapping.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(MappingInvalid):
        load_mapping(str(path))


def test_preserve_manual_edits_keeps_hand_assignments():
    previous = Mapping(
        images=[
            entry("a.jpg", "e-manual", "Picked By Hand"),
            entry("b.jpg", "e2", "Bergen Chair", "keyword", 0.5),
            entry("c.jpg"),
        ]
    )
    fresh = Mapping(
        images=[
            entry("a.jpg", "e1", "Oslo Sofa", "keyword", 0.6),
            entry("b.jpg", "e2", "Bergen Chair", "keyword", 0.5),
            entry("c.jpg", "e3", "Malmo Sideboard", "keyword", 1.0),
            entry("d.jpg"),
        ]
    )

    merged = preserve_manual_edits(fresh, previous)
    by_name = {e.filename: e for e in merged.images}

    assert by_name["a.jpg"].record_id == "e-manual"
    assert by_name["a.jpg"].method == "manual"
    assert by_name["a.jpg"].confidence == 1.0
    assert by_name["b.jpg"].method == "keyword"
    assert by_name["c.jpg"].record_id == "e3"
    assert by_name["d.jpg"].record_id is None


def test_preserve_manual_edits_keeps_rejected_suggestions():
    previous = Mapping(images=[entry("rug.jpg", None, None, "manual")])
    fresh = Mapping(images=[entry("rug.jpg", "wrong", "Oslo Sofa", "keyword", 0.4)])

    (kept,) = preserve_manual_edits(fresh, previous).images

    assert kept.record_id is None
    assert kept.suggested_record_name is None
    assert kept.method == "manual"
    assert kept.confidence is None


def test_cleared_record_without_manual_tag_is_suggested_again():
    previous = Mapping(images=[entry("rug.jpg")])
    fresh = Mapping(images=[entry("rug.jpg", "e1", "Oslo Sofa", "keyword", 0.4)])

    assert preserve_manual_edits(fresh, previous).images[0].record_id == "e1"
