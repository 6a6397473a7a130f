"""Tests for service module."""

from pathlib import Path

import pytest

from mmgen.config import GenerationSettings
from mmgen.llm.backend import PermanentBackendError
from mmgen.llm.generator import PartialBatchFailure
from mmgen.output import FileTrainingLogger, TrainingEntryType
from mmgen.source import FileSourceReader, InvalidUnitError, SourceNotFoundError
from mmgen.validation import validate

from .lib import VALID_EXPLANATION, DiagramService

SERVICE_DIAGRAM = "classDiagram\n  class OrderService {\n    +Create()\n  }"
REPOSITORY_DIAGRAM = "classDiagram\n  class OrderRepository {\n    +Find()\n  }"
BROKEN_REPOSITORY = "classDiagram\n  class OrderRepository {\n    +Find(\n  }"
RELATIONSHIP = "OrderService --> OrderRepository : uses"


@pytest.fixture
def project(tmp_path) -> Path:
    """A small Go project laid out under internal/."""
    files = {
        "cmd/main.go": "package main\n\nfunc main() {}\n",
        "internal/services/order_service.go": "package services\n\ntype OrderService struct{}\n",
        "internal/repositories/order_repository.go": (
            "package repositories\n\ntype OrderRepository struct{}\n"
        ),
        "internal/adapters/http/handler.go": "package http\n\ntype Handler struct{}\n",
        "internal/config/config.go": "package config\n\ntype Config struct{}\n",
    }
    for name, content in files.items():
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return tmp_path


@pytest.fixture
def settings() -> GenerationSettings:
    return GenerationSettings(max_fix_retries=2, retry_base_delay=0.0)


def _service(client, root: Path, settings: GenerationSettings, **kwargs) -> DiagramService:
    return DiagramService(client, reader=FileSourceReader(root), settings=settings, **kwargs)


def _class_map_responder(repository_answer):
    def respond(prompt: str):
        if "Fix the following" in prompt:
            return BROKEN_REPOSITORY
        if "only the relationships" in prompt:
            return f"```mermaid\n{RELATIONSHIP}\n```"
        if "'service'" in prompt:
            return SERVICE_DIAGRAM
        if "'repository'" in prompt:
            return repository_answer
        return "classDiagram\n  class Other"

    return respond


class TestGeneration:
    """Tests for the generation operations of DiagramService."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_file_diagram(self, scripted_client, project, settings):
        client = scripted_client(["```mermaid\ngraph TD\n  main --> run\n```"])
        service = _service(client, project, settings)

        diagram = await service.generate_file_diagram("cmd/main.go", "flowchart")

        assert diagram == "graph TD\n  main --> run"
        assert "flowchart diagram" in client.prompts[0]
        assert "func main()" in client.prompts[0]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_file_diagram_missing(self, scripted_client, project, settings):
        service = _service(scripted_client(["pie"]), project, settings)

        with pytest.raises(SourceNotFoundError):
            await service.generate_file_diagram("cmd/missing.go")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_file_diagram_is_repaired(self, scripted_client, project, settings):
        client = scripted_client(["graph TD\n  A( --> B", "graph TD\n  A --> B"])
        service = _service(client, project, settings)

        diagram = await service.generate_file_diagram("cmd/main.go")

        assert diagram == "graph TD\n  A --> B"
        assert client.calls == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_file_diagram_returns_best_effort(
        self, always_invalid_client, project, settings, invalid_diagram
    ):
        service = _service(always_invalid_client, project, settings)

        diagram = await service.generate_file_diagram("cmd/main.go")

        assert diagram == invalid_diagram
        assert always_invalid_client.calls == 1 + settings.max_fix_retries

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_component_diagram(self, scripted_client, project, settings, valid_diagram):
        client = scripted_client([valid_diagram])
        service = _service(client, project, settings)

        diagram = await service.generate_component_diagram("adapter:http", "class")

        assert diagram == valid_diagram
        assert "adapter 'http'" in client.prompts[0]
        assert "type Handler struct" in client.prompts[0]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_component_without_files(self, scripted_client, project, settings):
        service = _service(scripted_client(["pie"]), project, settings)

        with pytest.raises(SourceNotFoundError):
            await service.generate_component_diagram("model:orders")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_component_bad_spec(self, scripted_client, project, settings):
        service = _service(scripted_client(["pie"]), project, settings)

        with pytest.raises(InvalidUnitError):
            await service.generate_component_diagram("orders")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_project_sequence(self, scripted_client, project, settings):
        answer = "sequenceDiagram\n  Handler->>OrderService: Create"
        client = scripted_client([answer])
        service = _service(client, project, settings)

        diagram = await service.generate_project_diagram("sequence")

        assert diagram == answer
        assert client.calls == 1
        prompt = client.prompts[0]
        assert "sequence diagram showing the interactions" in prompt
        assert "// File: order_service.go" in prompt
        assert "// File: handler.go" in prompt
        assert "// File: config.go" not in prompt

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_project_config(self, scripted_client, project, settings):
        client = scripted_client(["graph TD\n  Config --> App"])
        service = _service(client, project, settings)

        await service.generate_project_diagram("config")

        assert "// File: config.go" in client.prompts[0]
        assert "order_service.go" not in client.prompts[0]

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind", ["basic", "flowchart", "nonsense"])
    async def test_project_rejects_kind(self, scripted_client, project, settings, kind):
        client = scripted_client(["pie"])
        service = _service(client, project, settings)

        with pytest.raises(ValueError, match="invalid project diagram type"):
            await service.generate_project_diagram(kind)
        assert client.calls == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_project_without_sources(self, scripted_client, tmp_path, settings):
        service = _service(scripted_client(["pie"]), tmp_path, settings)

        with pytest.raises(SourceNotFoundError):
            await service.generate_project_diagram("adapters")


class TestClassMap:
    """Tests for the project-wide class diagram."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_combines_components_and_relationships(
        self, scripted_client, project, settings
    ):
        client = scripted_client(responder=_class_map_responder(REPOSITORY_DIAGRAM))
        service = _service(client, project, settings)

        diagram = await service.generate_project_diagram("class")

        assert diagram.startswith("classDiagram\n")
        assert "%% SERVICE components" in diagram
        assert "%% REPOSITORY components" in diagram
        assert "%% Cross-component relationships" in diagram
        assert RELATIONSHIP in diagram
        assert validate(diagram).is_valid
        # service, repository, adapter, config; no model directory
        assert client.calls == 5

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_tolerates_unrepaired_component(self, scripted_client, project, settings):
        client = scripted_client(responder=_class_map_responder(BROKEN_REPOSITORY))
        service = _service(client, project, settings)

        diagram = await service.generate_project_diagram("class")

        assert "class OrderService" in diagram
        assert "class OrderRepository" in diagram
        assert RELATIONSHIP in diagram

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_backend_failure_propagates(self, scripted_client, project, settings):
        client = scripted_client(
            responder=_class_map_responder(PermanentBackendError("400 bad request"))
        )
        service = _service(client, project, settings)

        with pytest.raises(PartialBatchFailure) as excinfo:
            await service.generate_project_diagram("class")

        assert set(excinfo.value.failed) == {"repository"}
        assert "service" in excinfo.value.succeeded


class TestValidateFixExplain:
    """Tests for validate, fix and explain."""

    @pytest.mark.unit
    def test_validate(self, scripted_client, project, settings, invalid_diagram):
        service = _service(scripted_client(["pie"]), project, settings)

        result = service.validate(invalid_diagram)

        assert not result.is_valid
        assert result.diagnostics

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_fix(self, scripted_client, project, settings, invalid_diagram, valid_diagram):
        client = scripted_client([valid_diagram])
        service = _service(client, project, settings)

        outcome = await service.fix(invalid_diagram)

        assert outcome.succeeded
        assert outcome.artifact == valid_diagram
        assert len(outcome.attempts) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_fix_valid_is_noop(self, scripted_client, project, settings, valid_diagram):
        client = scripted_client(["pie"])
        service = _service(client, project, settings)

        outcome = await service.fix(valid_diagram)

        assert outcome.succeeded
        assert outcome.artifact == valid_diagram
        assert client.calls == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_fix_exhausted(
        self, always_invalid_client, project, settings, invalid_diagram
    ):
        service = _service(always_invalid_client, project, settings)

        outcome = await service.fix(invalid_diagram, max_retries=1)

        assert not outcome.succeeded
        assert outcome.error is not None
        assert always_invalid_client.calls == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_explain_valid_short_circuits(
        self, scripted_client, project, settings, valid_diagram
    ):
        client = scripted_client(["unused"])
        service = _service(client, project, settings)

        explanation = await service.explain(validate(valid_diagram))

        assert explanation == VALID_EXPLANATION
        assert client.calls == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_explain(self, scripted_client, project, settings, invalid_diagram):
        client = scripted_client(["  Close the parenthesis after Create.  \n"])
        service = _service(client, project, settings)

        explanation = await service.explain(validate(invalid_diagram))

        assert explanation == "Close the parenthesis after Create."
        assert "Explain the following" in client.prompts[0]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_training_log(
        self, tmp_path, scripted_client, project, settings, invalid_diagram, valid_diagram
    ):
        training = FileTrainingLogger(tmp_path / "logs", session_id="s1")
        client = scripted_client([valid_diagram, "Close the parenthesis."])
        service = _service(client, project, settings, training_logger=training)

        await service.fix(invalid_diagram)
        await service.explain(validate(invalid_diagram))

        assert [e.type for e in training.entries()] == [
            TrainingEntryType.VALIDATION,
            TrainingEntryType.FIX_ATTEMPT,
            TrainingEntryType.EXPLANATION,
        ]


class TestLiveProvider:
    """Round trip against a configured provider."""

    @pytest.mark.llm
    @pytest.mark.asyncio
    async def test_fix_with_real_backend(self, tmp_path):
        service = DiagramService.from_backend(
            source_root=tmp_path, settings=GenerationSettings(max_fix_retries=3)
        )

        outcome = await service.fix("graph TD\n  A[Start --> B(End)")

        assert outcome.succeeded
        assert validate(outcome.artifact).is_valid
