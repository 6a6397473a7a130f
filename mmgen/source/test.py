"""Unit tests for source reading."""

from pathlib import Path

import pytest

from .lib import (
    FileSourceReader,
    InvalidUnitError,
    SourceNotFoundError,
    SourceReader,
    parse_component_spec,
)


def _write(root: Path, relative: str, content: str = "package x\n") -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A small Go service tree."""
    _write(tmp_path, "cmd/main.go", "package main\n")
    _write(tmp_path, "internal/services/orders.go", "package services // orders\n")
    _write(tmp_path, "internal/services/billing.go", "package services // billing\n")
    _write(tmp_path, "internal/services/service.go", "package services // shared\n")
    _write(tmp_path, "internal/services/nested/orders_helper.go")
    _write(tmp_path, "internal/services/README.md", "# docs\n")
    _write(tmp_path, "internal/repositories/orders_repo.go")
    _write(tmp_path, "internal/adapters/http/handler.go", "package http\n")
    _write(tmp_path, "internal/adapters/http/routes.go", "package http\n")
    _write(tmp_path, "internal/adapters/grpc/server.go", "package grpc\n")
    _write(tmp_path, "internal/models/order.go")
    return tmp_path


class TestParseComponentSpec:
    """Tests for parse_component_spec."""

    @pytest.mark.unit
    def test_valid(self):
        assert parse_component_spec("service:orders") == ("service", "orders")

    @pytest.mark.unit
    @pytest.mark.parametrize("spec", ["orders", "service:", ":orders", "a:b:c", ""])
    def test_invalid(self, spec):
        with pytest.raises(InvalidUnitError):
            parse_component_spec(spec)


class TestFileSourceReader:
    """Tests for FileSourceReader."""

    @pytest.mark.unit
    def test_is_source_reader(self, project):
        assert isinstance(FileSourceReader(project), SourceReader)

    @pytest.mark.unit
    def test_read_relative_unit(self, project):
        reader = FileSourceReader(project)
        assert reader.read_unit("cmd/main.go") == "package main\n"

    @pytest.mark.unit
    def test_read_absolute_unit(self, project):
        reader = FileSourceReader(project / "internal")
        assert reader.read_unit(project / "cmd" / "main.go") == "package main\n"

    @pytest.mark.unit
    def test_missing_unit(self, project):
        with pytest.raises(SourceNotFoundError):
            FileSourceReader(project).read_unit("cmd/missing.go")

    @pytest.mark.unit
    def test_wrong_extension(self, project):
        with pytest.raises(InvalidUnitError):
            FileSourceReader(project).read_unit("internal/services/README.md")

    @pytest.mark.unit
    def test_custom_extensions(self, project):
        reader = FileSourceReader(project, extensions=(".md",))
        assert reader.read_unit("internal/services/README.md") == "# docs\n"

    @pytest.mark.unit
    def test_binary_file_is_invalid(self, project):
        (project / "blob.go").write_bytes(b"\xff\xfe\x00\x80")
        with pytest.raises(InvalidUnitError):
            FileSourceReader(project).read_unit("blob.go")

    @pytest.mark.unit
    def test_root_from_environment(self, project, monkeypatch):
        monkeypatch.setenv("MMGEN_SOURCE_ROOT", str(project))
        assert FileSourceReader().root == project

    @pytest.mark.unit
    def test_find_service_by_name(self, project):
        """Top-level files matching the name or the type are included."""
        files = FileSourceReader(project).find_component_files("service", "orders")
        names = [p.name for p in files]
        assert names == ["orders.go", "service.go"]

    @pytest.mark.unit
    def test_find_adapter_directory(self, project):
        files = FileSourceReader(project).find_component_files("adapter", "http")
        assert [p.name for p in files] == ["handler.go", "routes.go"]

    @pytest.mark.unit
    def test_find_model_in_plural_directory(self, project):
        files = FileSourceReader(project).find_component_files("model", "order")
        assert [p.name for p in files] == ["order.go"]

    @pytest.mark.unit
    def test_find_unknown_type(self, project):
        with pytest.raises(InvalidUnitError):
            FileSourceReader(project).find_component_files("widget", "x")

    @pytest.mark.unit
    def test_find_missing_directory(self, project):
        with pytest.raises(SourceNotFoundError):
            FileSourceReader(project).find_component_files("config", "app")

    @pytest.mark.unit
    def test_find_all_component_files(self, project):
        """Recurses each type directory, skipping unknown and missing types."""
        reader = FileSourceReader(project)
        files = reader.find_all_component_files(["service", "adapter", "config", "widget"])
        relative = [p.relative_to(project).as_posix() for p in files]
        assert relative == [
            "internal/services/billing.go",
            "internal/services/nested/orders_helper.go",
            "internal/services/orders.go",
            "internal/services/service.go",
            "internal/adapters/grpc/server.go",
            "internal/adapters/http/handler.go",
            "internal/adapters/http/routes.go",
        ]

    @pytest.mark.unit
    def test_read_files_with_labels(self, project):
        reader = FileSourceReader(project)
        files = reader.find_component_files("adapter", "http")
        code = reader.read_files(files, label=True)
        assert code == (
            "// File: handler.go\npackage http\n\n\n// File: routes.go\npackage http\n"
        )
