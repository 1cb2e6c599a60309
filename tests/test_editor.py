"""Tests for TrackEditor - the frontend-facing editing session."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from tracktracer import TracerConfig, TrackEditor
from tracktracer.editor import IMPORT_SUCCESS_MESSAGE
from tracktracer.transforms import ViewportTransform


def _snapshot(editor: TrackEditor) -> dict:
    return {
        "points": [p.to_dict() for p in editor.graph],
        "edges": [e.to_dict() for e in editor.graph.edges],
        "image": editor.image,
        "meta": (editor.metadata.track_length_km, editor.metadata.race_type),
        "selection": editor.selection,
    }


class TestConfig:
    def test_defaults_applied(self) -> None:
        editor = TrackEditor()

        assert editor.metadata.track_length_km == 5.0
        assert editor.metadata.race_type == "Circuit"
        assert editor.phase == "idle"

    def test_custom_config(self) -> None:
        config = TracerConfig(
            default_track_length_km=2.0,
            default_race_type="Point to point",
            undo_key="u",
        )

        editor = TrackEditor(config=config)

        assert editor.metadata.track_length_km == 2.0
        assert editor.metadata.race_type == "Point to point"
        assert editor.interaction.undo_key == "u"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"default_track_length_km": -1.0},
            {"default_race_type": "Rally"},
            {"click_threshold": 0.0},
            {"undo_key": "ctrl+z"},
        ],
    )
    def test_invalid_config(self, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            TracerConfig(**kwargs)


class TestPointerInput:
    """Tests for device-coordinate pointer events."""

    def test_canvas_click_uses_viewport(self, editor: TrackEditor) -> None:
        editor.viewport = ViewportTransform.from_view(pan=(100.0, 50.0), zoom=2.0)

        point = editor.on_canvas_click(120.0, 70.0)

        assert (point.x, point.y) == pytest.approx((10.0, 10.0))

    def test_hit_test_uses_viewport(self, editor: TrackEditor) -> None:
        point = editor.on_canvas_click(10.0, 10.0)
        editor.viewport = ViewportTransform.from_view(pan=(100.0, 0.0))

        assert editor.hit_test(110.0, 10.0).id == point.id
        assert editor.hit_test(10.0, 10.0) is None

    def test_drag_moves_point(self, populated_editor: TrackEditor) -> None:
        point_id = populated_editor.graph.ids[1]

        populated_editor.on_marker_press(point_id)
        populated_editor.on_pointer_move(60.0, 5.0)
        populated_editor.on_pointer_release()

        point = populated_editor.graph.get(point_id)
        assert (point.x, point.y) == (60.0, 5.0)
        assert populated_editor.phase == "idle"

    def test_move_without_drag_ignored(self, populated_editor: TrackEditor) -> None:
        before = _snapshot(populated_editor)

        populated_editor.on_pointer_move(1.0, 1.0)

        assert _snapshot(populated_editor) == before

    def test_pointer_leave_ends_drag(self, populated_editor: TrackEditor) -> None:
        populated_editor.on_marker_press(populated_editor.graph.ids[0])

        populated_editor.on_pointer_leave()

        assert populated_editor.phase == "idle"

    def test_connect_flow(self, populated_editor: TrackEditor) -> None:
        a, b, _ = populated_editor.graph.ids
        populated_editor.set_connect_mode(True)

        populated_editor.on_marker_click(a)
        assert populated_editor.pending_id == a
        populated_editor.on_marker_click(b)

        assert populated_editor.graph.has_edge(a, b)
        assert populated_editor.selection == [b]

    def test_on_key_undo(self, populated_editor: TrackEditor) -> None:
        assert populated_editor.on_key("Z") == "undo"
        assert len(populated_editor.graph) == 2

    def test_on_key_with_text_focus(self, populated_editor: TrackEditor) -> None:
        assert populated_editor.on_key("z", text_focus=True) is None
        assert len(populated_editor.graph) == 3


class TestControls:
    def test_set_track_length(self, editor: TrackEditor) -> None:
        editor.set_track_length(12.5)

        assert editor.metadata.track_length_km == 12.5

    def test_negative_track_length_rejected(self, editor: TrackEditor) -> None:
        with pytest.raises(ValueError, match="non-negative"):
            editor.set_track_length(-1)

        assert editor.metadata.track_length_km == 5.0

    def test_set_race_type(self, editor: TrackEditor) -> None:
        editor.set_race_type("Point to point")

        assert not editor.metadata.is_circuit

    def test_invalid_race_type_rejected(self, editor: TrackEditor) -> None:
        with pytest.raises(ValueError, match="Race type"):
            editor.set_race_type("Drag")

    def test_attribute_broadcast(self, populated_editor: TrackEditor) -> None:
        a, b, c = populated_editor.graph.ids
        populated_editor.interaction.select([b, a])

        assert populated_editor.displayed_attribute("corner") == "Low speed"
        assert populated_editor.set_attribute("surface", "Dirt") == 2

        assert populated_editor.graph.get(a).surface == "Dirt"
        assert populated_editor.graph.get(b).surface == "Dirt"
        assert populated_editor.graph.get(c).surface is None

    def test_clear_keeps_edges(self, populated_editor: TrackEditor) -> None:
        populated_editor.clear()

        assert len(populated_editor.graph) == 0
        assert len(populated_editor.graph.edges) == 1
        assert not populated_editor.can_export

    def test_clear_edges(self, populated_editor: TrackEditor) -> None:
        populated_editor.clear_edges()

        assert populated_editor.graph.edges == []
        assert len(populated_editor.graph) == 3

    def test_set_image_empty_is_none(self, editor: TrackEditor) -> None:
        editor.set_image("")

        assert editor.image is None

    def test_load_image(self, editor: TrackEditor, tmp_path: Path) -> None:
        image = tmp_path / "ref.png"
        image.write_bytes(b"png")

        assert editor.load_image(image)
        assert editor.image.startswith("data:image/png;base64,")

    def test_load_image_custom_loader(self, editor: TrackEditor) -> None:
        assert editor.load_image("any.png", loader=lambda path: f"file:{path.name}")
        assert editor.image == "file:any.png"

    def test_load_image_failure_keeps_current(
        self, populated_editor: TrackEditor, notices: list[str], tmp_path: Path
    ) -> None:
        before = populated_editor.image

        assert not populated_editor.load_image(tmp_path / "missing.png")

        assert populated_editor.image == before
        assert notices and notices[-1].startswith("Failed to load image")


class TestExport:
    def test_export_requires_points(self, editor: TrackEditor) -> None:
        assert not editor.can_export
        with pytest.raises(ValueError, match="Nothing to export"):
            editor.export_document()

    def test_export_document(self, populated_editor: TrackEditor) -> None:
        document = populated_editor.export_document()

        assert len(document["points"]) == 3
        assert len(document["edges"]) == 1
        assert document["image"] == populated_editor.image

    def test_export_into_directory(self, populated_editor: TrackEditor, tmp_path: Path) -> None:
        path = populated_editor.export_to(tmp_path)

        assert path == tmp_path / "track.json"
        assert json.loads(path.read_text())["meta"]["raceType"] == "Circuit"

    def test_export_to_file(self, populated_editor: TrackEditor, tmp_path: Path) -> None:
        path = populated_editor.export_to(tmp_path / "out.json")

        assert path.exists()

    def test_export_to_requires_points(self, editor: TrackEditor, tmp_path: Path) -> None:
        with pytest.raises(ValueError):
            editor.export_to(tmp_path)

        assert not (tmp_path / "track.json").exists()


class TestImport:
    """Tests for atomic document import."""

    def test_round_trip_through_editor(
        self, populated_editor: TrackEditor, tmp_path: Path
    ) -> None:
        populated_editor.set_track_length(7.25)
        populated_editor.set_race_type("Point to point")
        expected = _snapshot(populated_editor)
        path = populated_editor.export_to(tmp_path)

        fresh = TrackEditor(notify=lambda message: None)
        assert fresh.import_file(path)

        assert _snapshot(fresh) == expected

    def test_success_notifies_and_resets_interaction(
        self, populated_editor: TrackEditor, notices: list[str]
    ) -> None:
        populated_editor.set_connect_mode(True)
        populated_editor.on_marker_click(populated_editor.graph.ids[0])

        assert populated_editor.import_document({"points": [{"id": "n", "x": 1, "y": 2}]})

        assert notices[-1] == IMPORT_SUCCESS_MESSAGE
        assert populated_editor.graph.ids == ["n"]
        assert populated_editor.graph.edges == []
        assert populated_editor.selection == []
        assert populated_editor.pending_id is None
        assert populated_editor.connect_mode

    def test_missing_image_clears_image(self, populated_editor: TrackEditor) -> None:
        populated_editor.import_document({"points": []})

        assert populated_editor.image is None

    def test_partial_meta_keeps_other_field(self, populated_editor: TrackEditor) -> None:
        populated_editor.set_track_length(9.0)

        populated_editor.import_document({"meta": {"raceType": "Point to point"}})

        assert populated_editor.metadata.track_length_km == 9.0
        assert populated_editor.metadata.race_type == "Point to point"

    @pytest.mark.parametrize("raw", [42, None, "track", [{"x": 1}]])
    def test_malformed_document_changes_nothing(
        self, populated_editor: TrackEditor, notices: list[str], raw
    ) -> None:
        populated_editor.interaction.select(populated_editor.graph.ids[:1])
        before = _snapshot(populated_editor)

        assert not populated_editor.import_document(raw)

        assert _snapshot(populated_editor) == before
        assert notices[-1].startswith("Failed to import track:")

    @pytest.mark.parametrize(
        "text",
        [
            "{oops",
            "[" * 200_000,
            '{"points": [{"x": ' + "1" * 5000 + "}]}",
        ],
        ids=["syntax", "deep-nesting", "digit-limit"],
    )
    def test_invalid_json_text(
        self, populated_editor: TrackEditor, notices: list[str], text: str
    ) -> None:
        before = _snapshot(populated_editor)

        assert not populated_editor.import_text(text)

        assert _snapshot(populated_editor) == before
        assert "Failed to import track" in notices[-1]

    def test_unreadable_file(
        self, populated_editor: TrackEditor, notices: list[str], tmp_path: Path
    ) -> None:
        before = _snapshot(populated_editor)

        assert not populated_editor.import_file(tmp_path / "nope.json")

        assert _snapshot(populated_editor) == before
        assert notices[-1].startswith("Failed to import track:")

    def test_strict_enums_config(self) -> None:
        editor = TrackEditor(config=TracerConfig(strict_enums=True), notify=lambda m: None)

        with pytest.warns(UserWarning):
            editor.import_document({"points": [{"id": "p", "corner": "Hairpin"}]})

        assert editor.graph.get("p").corner is None

    def test_dangling_imported_edge_survives_until_export(
        self, editor: TrackEditor
    ) -> None:
        editor.import_document(
            {
                "points": [{"id": "a"}, {"id": "b"}],
                "edges": [{"key": "a|b", "a": "a", "b": "b"}, {"key": "a|z", "a": "a", "b": "z"}],
            }
        )

        assert len(editor.graph.edges) == 2
        assert editor.export_document()["edges"] == [{"key": "a|b", "a": "a", "b": "b"}]
