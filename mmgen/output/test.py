"""Tests for output module."""

import json

import pytest

from mmgen.diagram import combine_class_diagrams
from mmgen.llm.generator import RepairLoop, TrainingLogger
from mmgen.validation import validate

from .lib import DiagramOutput, OutputWriter, diagram_filename
from .training import FileTrainingLogger, TrainingEntryType


@pytest.fixture
def project_map() -> str:
    """Combined class diagram with two component sections."""
    return combine_class_diagrams(
        {
            "service": "classDiagram\n  class OrderService",
            "repository": "classDiagram\n  class OrderRepository",
        },
        ["OrderService --> OrderRepository : uses"],
    )


class TestDiagramFilename:
    """Tests for diagram_filename function."""

    @pytest.mark.unit
    def test_joins_parts(self):
        assert diagram_filename("main.go", "sequence") == "main.go_sequence"

    @pytest.mark.unit
    def test_replaces_unsafe_characters(self):
        assert diagram_filename("service", "orders/v2", "class") == "service_orders_v2_class"

    @pytest.mark.unit
    def test_empty(self):
        assert diagram_filename("", "") == "diagram"


class TestOutputWriter:
    """Tests for OutputWriter class."""

    @pytest.mark.unit
    def test_save_creates_directory(self, tmp_path):
        """Test saving into a directory that does not exist yet."""
        writer = OutputWriter(tmp_path / "out" / "nested")
        output = writer.save("project_basic", "```mermaid\ngraph TD\n  A --> B\n```")

        assert isinstance(output, DiagramOutput)
        assert output.path == tmp_path / "out" / "nested" / "project_basic.mmd"
        assert output.path.read_text(encoding="utf-8") == "graph TD\n  A --> B\n"
        assert output.content == "graph TD\n  A --> B"

    @pytest.mark.unit
    def test_save_drops_comment_lines(self, tmp_path):
        output = OutputWriter(tmp_path).save("x", "graph TD\n  %% note\n  A --> B")
        assert "%%" not in output.path.read_text(encoding="utf-8")

    @pytest.mark.unit
    def test_save_custom_extension(self, tmp_path):
        output = OutputWriter(tmp_path).save("x", "pie", extension="txt")
        assert output.path.name == "x.txt"

    @pytest.mark.unit
    def test_save_split(self, tmp_path, project_map):
        """One standalone file per component plus the full map."""
        outputs = OutputWriter(tmp_path).save_split(project_map, "class")

        names = [o.path.name for o in outputs]
        assert names == ["service_class.mmd", "repository_class.mmd", "project_class_full.mmd"]

        service = (tmp_path / "service_class.mmd").read_text(encoding="utf-8")
        assert service.startswith("classDiagram\n")
        assert "OrderService" in service
        assert "OrderRepository" not in service
        assert validate(service).is_valid

        full = (tmp_path / "project_class_full.mmd").read_text(encoding="utf-8")
        assert "OrderService --> OrderRepository : uses" in full

    @pytest.mark.unit
    def test_save_split_without_sections(self, tmp_path):
        outputs = OutputWriter(tmp_path).save_split("sequenceDiagram\n  A->>B: hi", "sequence")

        assert [o.path.name for o in outputs] == ["project_sequence.mmd"]


class TestFileTrainingLogger:
    """Tests for FileTrainingLogger class."""

    @pytest.mark.unit
    def test_satisfies_protocol(self, tmp_path):
        assert isinstance(FileTrainingLogger(tmp_path), TrainingLogger)

    @pytest.mark.unit
    def test_session_directory(self, tmp_path):
        training = FileTrainingLogger(tmp_path, session_id="s1")
        assert training.session_dir == tmp_path / "s1"
        assert training.session_dir.is_dir()

    @pytest.mark.unit
    def test_entries_written_in_order(self, tmp_path):
        training = FileTrainingLogger(tmp_path, session_id="s1")
        broken = "graph TD\n  A( --> B"
        validation = validate(broken)

        training.log_validation(broken, validation)
        training.log_attempt(broken, validation, "graph TD\n  A --> B", 1, True)
        training.log_explanation(validation, "Close the parenthesis.")

        entries = training.entries()
        assert [e.type for e in entries] == [
            TrainingEntryType.VALIDATION,
            TrainingEntryType.FIX_ATTEMPT,
            TrainingEntryType.EXPLANATION,
        ]
        assert entries[1].attempt == 1
        assert entries[1].is_successful is True
        assert entries[2].original_diagram == broken
        assert entries[0].validation_result.diagnostics == validation.diagnostics

    @pytest.mark.unit
    def test_json_layout(self, tmp_path):
        training = FileTrainingLogger(tmp_path, session_id="s1")
        training.log_validation("pie", validate("pie"))

        (path,) = training.session_dir.glob("*.json")
        assert path.name == "00001_validation.json"
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["session_id"] == "s1"
        assert data["validation_result"]["is_valid"] is True
        assert "explanation" not in data

    @pytest.mark.unit
    def test_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.delenv("MERMAID_LOG_DIR", raising=False)
        assert FileTrainingLogger.from_environment() is None

        monkeypatch.setenv("MERMAID_LOG_DIR", str(tmp_path))
        training = FileTrainingLogger.from_environment()
        assert training.session_dir.parent == tmp_path

    @pytest.mark.unit
    def test_explicit_dir_beats_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MERMAID_LOG_DIR", str(tmp_path / "env"))
        training = FileTrainingLogger.from_environment(tmp_path / "flag")
        assert training.session_dir.parent == tmp_path / "flag"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_records_repair_loop(self, tmp_path, scripted_client):
        training = FileTrainingLogger(tmp_path, session_id="s1")
        client = scripted_client(["graph TD\n  A --> B"])
        loop = RepairLoop(client, training_logger=training)

        broken = "graph TD\n  A( --> B"
        await loop.repair(broken, validate(broken))

        (entry,) = training.entries()
        assert entry.type is TrainingEntryType.FIX_ATTEMPT
        assert entry.fixed_diagram == "graph TD\n  A --> B"
