"""DiagramService: the user-facing diagram operations.

Ties source reading, the generation engine and validation together behind
the operations exposed by the command line: per-file, per-component and
project-wide generation, plus validate, fix and explain for existing
diagrams.
"""

import logging
from pathlib import Path

from ..config import GenerationSettings, load_settings
from ..diagram import (
    COMPONENT_TYPES,
    PROJECT_COMPONENTS,
    DiagramKind,
    combine_class_diagrams,
)
from ..llm.backend import BackendTextClient, LLMBackend, create_llm_backend
from ..llm.backend.base import TextGenerationClient
from ..llm.generator import (
    GenerationJob,
    GenerationOrchestrator,
    PartialBatchFailure,
    RepairOutcome,
    RetryController,
    TrainingLogger,
    ValidationExhaustedError,
)
from ..llm.generator.repair import safe_log
from ..prompt import PromptBuilder
from ..source import FileSourceReader, SourceNotFoundError, parse_component_spec
from ..validation import ValidationResult, validate

logger = logging.getLogger(__name__)

VALID_EXPLANATION = "The Mermaid diagram is valid. No errors to explain."


class DiagramService:
    """Generates, validates, repairs and explains Mermaid diagrams.

    Example:
        >>> service = DiagramService.from_backend(source_root="/src/shop")
        >>> diagram = await service.generate_component_diagram("service:orders", "class")
        >>> outcome = await service.fix(diagram)
    """

    def __init__(
        self,
        client: TextGenerationClient,
        *,
        reader: FileSourceReader | None = None,
        settings: GenerationSettings | None = None,
        prompts: PromptBuilder | None = None,
        retry: RetryController | None = None,
        training_logger: TrainingLogger | None = None,
    ):
        """Initialize DiagramService.

        Args:
            client: Text generation client.
            reader: Source reader. Defaults to the configured source root.
            settings: Generation budgets. Defaults to `load_settings()`.
            prompts: Prompt builder.
            retry: Retry controller override.
            training_logger: Optional sink for validation and repair traces.
        """
        self._reader = reader or FileSourceReader()
        self._prompts = prompts or PromptBuilder()
        self._training_logger = training_logger
        self._orchestrator = GenerationOrchestrator(
            client,
            settings=settings or load_settings(),
            prompts=self._prompts,
            retry=retry,
            training_logger=training_logger,
        )

    @classmethod
    def from_backend(
        cls,
        backend: LLMBackend | None = None,
        *,
        model: str | None = None,
        source_root: Path | str | None = None,
        **kwargs,
    ) -> "DiagramService":
        """Build a service over an `LLMBackend` (default: from configuration)."""
        backend = backend or create_llm_backend(model)
        logger.info("Using %s", backend.name)
        return cls(
            BackendTextClient(backend),
            reader=FileSourceReader(source_root),
            **kwargs,
        )

    @property
    def orchestrator(self) -> GenerationOrchestrator:
        return self._orchestrator

    @property
    def reader(self) -> FileSourceReader:
        return self._reader

    # =========================================================================
    # Generation
    # =========================================================================

    async def generate_file_diagram(
        self, path: Path | str, kind: DiagramKind | str = DiagramKind.BASIC
    ) -> str:
        """Generate a diagram for a single source file."""
        kind = DiagramKind.parse(kind)
        code = self._reader.read_unit(path)
        prompt = self._prompts.build(code, kind)
        return await self._generate_single(Path(path).name, code, kind, prompt)

    async def generate_component_diagram(
        self, spec: str, kind: DiagramKind | str = DiagramKind.CLASS
    ) -> str:
        """Generate a diagram for one component given as ``type:name``.

        Raises:
            InvalidUnitError: Malformed spec or unknown component type.
            SourceNotFoundError: No files for the component.
        """
        kind = DiagramKind.parse(kind)
        component_type, name = parse_component_spec(spec)
        files = self._reader.find_component_files(component_type, name)
        if not files:
            raise SourceNotFoundError(f"no files found for {component_type} {name}")

        code = self._reader.read_files(files)
        prompt = self._prompts.build_component_prompt(code, component_type, name, kind)
        return await self._generate_single(f"{component_type}-{name}", code, kind, prompt)

    async def generate_project_diagram(self, kind: DiagramKind | str) -> str:
        """Generate a project-wide map.

        ``class`` fans out one job per component type and merges the results
        with synthesized cross-component relationships. Other project kinds
        send the relevant components in a single request.

        Raises:
            ValueError: ``kind`` is not a project diagram kind.
            SourceNotFoundError: No relevant files in the source tree.
            PartialBatchFailure: A component failed at the backend.
        """
        parsed = DiagramKind.parse(kind)
        if not parsed.is_project_kind:
            raise ValueError(
                f"invalid project diagram type: {kind} "
                "(should be 'sequence', 'class', 'config', or 'adapters')"
            )
        if parsed is DiagramKind.CLASS:
            return await self._generate_class_map()

        files = self._reader.find_all_component_files(
            PROJECT_COMPONENTS.get(parsed, COMPONENT_TYPES)
        )
        if not files:
            raise SourceNotFoundError(
                f"no relevant files found for diagram type: {parsed.value}"
            )

        code = self._reader.read_files(files, label=True)
        prompt = self._prompts.build_project_prompt(code, parsed)
        return await self._generate_single(f"project-{parsed.value}", code, parsed, prompt)

    async def _generate_single(
        self, unit_id: str, code: str, kind: DiagramKind, prompt: str
    ) -> str:
        result = await self._orchestrator.generate_one(
            GenerationJob(unit_id, code, kind, prompt)
        )
        if result.error is not None:
            logger.warning("Failed to fix diagram for %s: %s", unit_id, result.error)
        return result.artifact

    async def _generate_class_map(self) -> str:
        jobs = []
        for component_type in COMPONENT_TYPES:
            files = self._reader.find_all_component_files([component_type])
            if not files:
                logger.debug("No %s components found", component_type)
                continue
            code = self._reader.read_files(files, label=True)
            prompt = self._prompts.build_component_class_prompt(code, component_type)
            jobs.append(GenerationJob(component_type, code, DiagramKind.CLASS, prompt))

        if not jobs:
            raise SourceNotFoundError("no component files found for class diagram")

        try:
            batch = await self._orchestrator.generate_all(jobs, synthesize=True)
        except PartialBatchFailure as failure:
            # Unrepaired diagrams are still usable; backend failures are not.
            if not all(
                isinstance(r.error, ValidationExhaustedError) for r in failure.failed.values()
            ):
                raise
            for unit_id, result in failure.failed.items():
                logger.warning("Failed to fix %s diagram: %s", unit_id, result.error)
            diagrams = failure.batch.artifacts()
            relationships = await self._orchestrator.synthesize_relationships(diagrams)
            return combine_class_diagrams(diagrams, relationships)

        return combine_class_diagrams(batch.artifacts(), batch.relationships)

    # =========================================================================
    # Validation
    # =========================================================================

    def validate(self, artifact: str) -> ValidationResult:
        validation = validate(artifact)
        safe_log(self._training_logger, "log_validation", artifact, validation)
        return validation

    async def fix(self, artifact: str, max_retries: int | None = None) -> RepairOutcome:
        """Repair an existing diagram.

        Args:
            artifact: Diagram text.
            max_retries: Repair budget; defaults to the configured value.

        Returns:
            RepairOutcome; check ``error`` for exhaustion.
        """
        validation = self.validate(artifact)
        return await self._orchestrator.repair_loop.repair(artifact, validation, max_retries)

    async def explain(self, validation: ValidationResult) -> str:
        """Ask the model for a friendly explanation of validation errors."""
        if validation.is_valid:
            return VALID_EXPLANATION

        prompt = self._prompts.build_explanation_prompt(validation)
        client = self._orchestrator.client
        explanation = await self._orchestrator.retry.execute(
            lambda: client.generate(prompt),
            name="explain",
        )
        explanation = explanation.strip()
        safe_log(self._training_logger, "log_explanation", validation, explanation)
        return explanation


__all__ = ["DiagramService", "VALID_EXPLANATION"]
