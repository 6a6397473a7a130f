"""Tests for the command line interface."""

import pytest

import mmgen.__main__ as cli
from mmgen.config import GenerationSettings
from mmgen.service import DiagramService
from mmgen.source import FileSourceReader

SERVICE_DIAGRAM = "classDiagram\n  class OrderService {\n    +Create()\n  }"


@pytest.fixture
def project(tmp_path):
    root = tmp_path / "project"
    for name, content in {
        "cmd/main.go": "package main\n",
        "internal/services/order_service.go": "package services\n",
    }.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def use_client(monkeypatch):
    """Route the CLI to a DiagramService over the given client."""

    def install(client):
        def create(args):
            return DiagramService(
                client,
                reader=FileSourceReader(args.root),
                settings=GenerationSettings(max_fix_retries=getattr(args, "retries", None) or 3),
            )

        monkeypatch.setattr(cli, "_create_service", create)

    return install


class TestParser:
    """Tests for build_parser."""

    @pytest.mark.unit
    def test_no_command(self, capsys):
        assert cli.main([]) == 1
        assert "usage" in capsys.readouterr().out

    @pytest.mark.unit
    def test_map_kinds_are_project_kinds(self):
        parser = cli.build_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(["map", "flowchart"])
        assert parser.parse_args(["map", "adapters"]).kind == "adapters"

    @pytest.mark.unit
    def test_common_options(self, tmp_path):
        args = cli.build_parser().parse_args(
            ["component", "class", "service", "orders", "--out-dir", str(tmp_path), "-v"]
        )
        assert args.out_dir == tmp_path
        assert args.verbose
        assert args.model is None


class TestValidateCommand:
    """Tests for the validate command."""

    @pytest.mark.unit
    def test_valid_file(self, tmp_path, capsys, valid_diagram):
        path = tmp_path / "ok.mmd"
        path.write_text(valid_diagram, encoding="utf-8")

        assert cli.main(["validate", str(path)]) == 0
        assert "syntax is valid" in capsys.readouterr().out

    @pytest.mark.unit
    def test_invalid_file(self, tmp_path, capsys, invalid_diagram):
        path = tmp_path / "broken.mmd"
        path.write_text(invalid_diagram, encoding="utf-8")

        assert cli.main(["validate", str(path)]) == 1
        assert "validation failed" in capsys.readouterr().out

    @pytest.mark.unit
    def test_fix_writes_file(
        self, tmp_path, scripted_client, use_client, invalid_diagram, valid_diagram
    ):
        path = tmp_path / "broken.mmd"
        path.write_text(invalid_diagram, encoding="utf-8")
        use_client(scripted_client([valid_diagram]))

        code = cli.main(["validate", str(path), "--fix", "--out-dir", str(tmp_path / "out")])

        assert code == 0
        fixed = (tmp_path / "out" / "broken_fixed.mmd").read_text(encoding="utf-8")
        assert fixed == valid_diagram + "\n"

    @pytest.mark.unit
    def test_fix_exhausted(
        self, tmp_path, capsys, always_invalid_client, use_client, invalid_diagram
    ):
        path = tmp_path / "broken.mmd"
        path.write_text(invalid_diagram, encoding="utf-8")
        use_client(always_invalid_client)

        assert cli.main(["validate", str(path), "--fix", "--retries", "2"]) == 1
        assert always_invalid_client.calls == 2

    @pytest.mark.unit
    def test_explain(self, tmp_path, capsys, scripted_client, use_client, invalid_diagram):
        path = tmp_path / "broken.mmd"
        path.write_text(invalid_diagram, encoding="utf-8")
        use_client(scripted_client(["Close the parenthesis."]))

        assert cli.main(["validate", str(path), "--explain"]) == 1
        assert "Close the parenthesis." in capsys.readouterr().out


class TestGenerateCommands:
    """Tests for file, component and map commands."""

    @pytest.mark.unit
    def test_file_to_out_dir(self, tmp_path, project, scripted_client, use_client):
        use_client(scripted_client(["```mermaid\ngraph TD\n  A --> B\n```"]))
        out_dir = tmp_path / "out"

        code = cli.main(
            ["file", "basic", "cmd/main.go", "--root", str(project), "--out-dir", str(out_dir)]
        )

        assert code == 0
        assert (out_dir / "main.go_basic.mmd").read_text(encoding="utf-8") == (
            "graph TD\n  A --> B\n"
        )

    @pytest.mark.unit
    def test_component_to_stdout(self, project, capsys, scripted_client, use_client):
        use_client(scripted_client([SERVICE_DIAGRAM]))

        code = cli.main(["component", "class", "service", "order", "--root", str(project)])

        assert code == 0
        assert "class OrderService" in capsys.readouterr().out

    @pytest.mark.unit
    def test_missing_component(self, project, scripted_client, use_client):
        use_client(scripted_client([SERVICE_DIAGRAM]))

        assert cli.main(["component", "class", "model", "order", "--root", str(project)]) == 1

    @pytest.mark.unit
    def test_map_split(self, tmp_path, project, scripted_client, use_client):
        use_client(scripted_client([SERVICE_DIAGRAM]))
        out_dir = tmp_path / "out"

        code = cli.main(
            ["map", "class", "--split", "--root", str(project), "--out-dir", str(out_dir)]
        )

        assert code == 0
        assert sorted(p.name for p in out_dir.glob("*.mmd")) == [
            "project_class_full.mmd",
            "service_class.mmd",
        ]
