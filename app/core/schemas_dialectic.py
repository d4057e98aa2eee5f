"""Pydantic schemas for dialectic stage inputs, generation and stage documents."""

from typing import Annotated, Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# ============================================================================
# Recipe input rules
# ============================================================================


class _InputRuleBase(BaseModel):
    """Fields shared by every input rule variant."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    slug: str = Field(
        ...,
        validation_alias=AliasChoices("slug", "stage_slug"),
        description="Slug of the stage the input comes from",
    )
    document_key: str | None = None
    required: bool = True
    multiple: bool = False
    section_header: str | None = None

    @property
    def key_filter(self) -> str | None:
        """Document key to filter on, or None when any document matches."""
        if not self.document_key or self.document_key == "*":
            return None
        return self.document_key


class DocumentRule(_InputRuleBase):
    """A finished, rendered document from a prior stage."""

    type: Literal["document"] = "document"


class FeedbackRule(_InputRuleBase):
    """User feedback left on a prior stage in the previous iteration."""

    type: Literal["feedback"] = "feedback"


class HeaderContextRule(_InputRuleBase):
    """Raw header-context output produced by a planner step."""

    type: Literal["header_context"] = "header_context"


class ContributionRule(_InputRuleBase):
    """Raw model output for a prior stage."""

    type: Literal["contribution"] = "contribution"


InputRule = Annotated[
    DocumentRule | FeedbackRule | HeaderContextRule | ContributionRule,
    Field(discriminator="type"),
]


class RecipeStep(BaseModel):
    """One step of a stage recipe and the inputs it needs."""

    model_config = ConfigDict(extra="ignore")

    id: str
    step_key: str
    step_name: str | None = None
    job_type: str = "EXECUTE"
    output_type: str | None = None
    inputs_required: list[InputRule] = Field(default_factory=list)


# ============================================================================
# Context objects
# ============================================================================


class ProjectContext(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    user_id: str
    project_name: str = ""
    initial_user_prompt: str | None = None
    selected_domain_id: str | None = None
    process_template_id: str | None = None
    status: str | None = None


class SessionContext(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    project_id: str
    selected_model_ids: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("selected_model_ids", "selected_model_catalog_ids"),
    )
    current_stage_id: str | None = None
    iteration_count: int = 1
    status: str | None = None
    session_description: str | None = None


class StageContext(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    slug: str
    display_name: str
    description: str | None = None
    recipe_step: RecipeStep


# ============================================================================
# Resolver output
# ============================================================================


class SourceDocumentMetadata(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    display_name: str
    header: str | None = None
    model_name: str | None = None
    document_key: str | None = None


class SourceDocument(BaseModel):
    """A downloaded prior-stage artifact ready for prompt assembly."""

    id: str
    type: str
    content: str
    metadata: SourceDocumentMetadata


class GatheredRecipeContext(BaseModel):
    source_documents: list[SourceDocument] = Field(default_factory=list)
    recipe_step: RecipeStep


# ============================================================================
# Generation
# ============================================================================


class AIModelConfig(BaseModel):
    """Provider catalog row for one selectable model."""

    model_config = ConfigDict(extra="ignore")

    id: str
    provider: str
    name: str
    api_identifier: str
    config: dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True


class AIModelResponse(BaseModel):
    """Normalized result of one provider call. Errors are values, not exceptions."""

    content: str | None = None
    input_tokens: int | None = None
    output_tokens: int | None = None
    processing_time_ms: int | None = None
    error: str | None = None
    error_code: str | None = None
    raw_provider_response: dict[str, Any] = Field(default_factory=dict)


class FailedAttempt(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_id: str
    error: str
    code: str
    details: str | None = None


class GenerateContributionsPayload(BaseModel):
    session_id: str
    stage_slug: str
    iteration_number: int = 1
    project_id: str | None = None
    max_output_tokens: int | None = None


class ServiceError(BaseModel):
    message: str
    code: str | None = None
    status: int = 500
    details: Any = None


class GenerateContributionsData(BaseModel):
    contributions: list[dict[str, Any]]
    status: str


class GenerateContributionsResult(BaseModel):
    success: bool
    data: GenerateContributionsData | None = None
    error: ServiceError | None = None


class PathContext(BaseModel):
    """Where an artifact belongs and how its file name is built."""

    model_config = ConfigDict(protected_namespaces=())

    project_id: str
    session_id: str
    iteration: int
    stage_slug: str
    model_slug: str
    attempt_count: int = 0
    document_key: str = "contribution"
    extension: str = "md"


class UploadContext(BaseModel):
    """Everything the file manager needs to persist and register a contribution."""

    model_config = ConfigDict(protected_namespaces=())

    path_context: PathContext
    content: str
    mime_type: str = "text/markdown"
    user_id: str | None = None
    model_id: str
    model_name: str
    contribution_type: str = "model_generated"
    seed_prompt_path: str | None = None
    tokens_used_input: int | None = None
    tokens_used_output: int | None = None
    processing_time_ms: int | None = None
    raw_provider_response: dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# Stage documents
# ============================================================================


class ListStageDocumentsPayload(BaseModel):
    session_id: str
    stage_slug: str
    iteration_number: int
    user_id: str
    project_id: str


class StageDocumentDescriptor(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    document_key: str
    model_id: str | None = None
    last_rendered_resource_id: str | None = None
    job_id: str
    status: str | None = None


class ListStageDocumentsData(BaseModel):
    documents: list[StageDocumentDescriptor] = Field(default_factory=list)


class ListStageDocumentsResponse(BaseModel):
    status: int
    data: ListStageDocumentsData | None = None
    error: ServiceError | None = None
