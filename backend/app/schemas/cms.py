"""CMS content enums, tool argument schemas, and the studio schema payload.

Tool argument models double as the JSON schema advertised to the LLM, so
field descriptions are written for the model. Fields are snake_case in
Python and camelCase on the wire.
"""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ToolArgs(BaseModel):
    """Base for tool arguments: camelCase aliases, unknown keys ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# Content enums


class ProjectStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    MAINTENANCE = "maintenance"
    ARCHIVED = "archived"
    CONCEPT = "concept"


class TechnologyCategory(str, Enum):
    FRONTEND = "frontend"
    BACKEND = "backend"
    DATA = "data"
    DEVOPS = "devops"
    AI = "ai"
    DESIGN = "design"
    OTHER = "other"


class KnowledgeCategory(str, Enum):
    PERSONAL = "personal"
    PROFESSIONAL = "professional"
    EDUCATION = "education"
    PROJECTS = "projects"
    SKILLS = "skills"
    EXPERIENCE = "experience"
    PREFERENCES = "preferences"
    FAQ = "faq"


class SkillCategory(str, Enum):
    PROGRAMMING = "programming"
    FRAMEWORKS = "frameworks"
    AI = "ai"
    CLOUD = "cloud"
    TOOLS = "tools"
    SOFT = "soft"
    DOMAIN = "domain"


class SkillProficiency(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


# Public Dave tools


class ProjectDetailsArgs(ToolArgs):
    project_name: str = Field(description="The name or ID of the project")


class SkillExpertiseArgs(ToolArgs):
    skill: str = Field(description="The skill or technology to look up")


class SearchPortfolioArgs(ToolArgs):
    query: str = Field(description="The search query")


class NoArgs(ToolArgs):
    pass


class KnowledgeItemsArgs(ToolArgs):
    topic: str = Field(description="The topic or question to find knowledge items for")


# Dave Admin tools


class TechnologyInput(ToolArgs):
    name: str = Field(description="Technology name")
    category: TechnologyCategory = Field(description="Technology category")


class CreateProjectArgs(ToolArgs):
    title: str = Field(description="Project title")
    description: str = Field(description="Short project description")
    status: ProjectStatus = Field(description="Current project status")
    is_featured: bool | None = Field(default=None, description="Whether this is a featured project")
    problem: str | None = Field(default=None, description="Problem the project solves")
    solution: str | None = Field(default=None, description="Solution approach")
    technologies: list[TechnologyInput] | None = Field(
        default=None, description="Technologies used in the project"
    )
    github: str | None = Field(default=None, description="GitHub repository URL")
    demo_url: str | None = Field(default=None, description="Live demo URL")


class CreateKnowledgeItemArgs(ToolArgs):
    title: str = Field(description="Knowledge item title")
    category: KnowledgeCategory = Field(description="Category of knowledge")
    content: str = Field(description="Main content text")
    question: str | None = Field(default=None, description="Related question this knowledge answers")
    keywords: list[str] = Field(description="Keywords for improved searchability")
    priority: int = Field(ge=1, le=10, description="Priority level (1-10), higher is more important")
    is_public: bool | None = Field(default=None, description="Whether this item is publicly accessible")


class SkillExample(ToolArgs):
    title: str = Field(description="Example title")
    description: str = Field(description="Example description")


class UpdateSkillArgs(ToolArgs):
    name: str = Field(description="Skill name")
    category: SkillCategory = Field(description="Skill category")
    proficiency: SkillProficiency = Field(description="Proficiency level")
    description: str | None = Field(default=None, description="Description of the skill")
    years_experience: float | None = Field(
        default=None, description="Years of experience with this skill"
    )
    examples: list[SkillExample] | None = Field(default=None, description="Examples of using this skill")
    featured: bool | None = Field(default=None, description="Whether this is a featured skill")


class CheckContentArgs(ToolArgs):
    content_type: Literal["project", "skill", "knowledgeBase"] = Field(
        description="Type of content to check"
    )
    search_term: str = Field(description="Term to search for in title, name, or other key fields")


# Content copilot document tools


class WriteArgs(ToolArgs):
    document_id: str = Field(description="The Sanity document ID")
    path: str = Field(
        description='Path to the field (e.g., "title", "content.blocks[0].text", '
        '"metadata.tags[_key==\\"abc123\\"].value")'
    )
    value: Any = Field(description="The value to set at the specified path")
    create_if_missing: bool = Field(
        default=True,
        description="Create parent objects if they don't exist (default: true)",
    )


class DeleteArgs(ToolArgs):
    document_id: str = Field(description="The Sanity document ID")
    path: str = Field(
        description='Path to delete (e.g., "title", "content.blocks[0]", "tags[_key==\\"abc123\\"]")'
    )


class ArrayArgs(ToolArgs):
    document_id: str = Field(description="The Sanity document ID")
    path: str = Field(description='Path to the array (e.g., "tags", "content.blocks")')
    operation: Literal["append", "prepend", "insert", "remove", "replace"] = Field(
        description="The operation to perform on the array"
    )
    items: list[Any] | None = Field(
        default=None,
        description="Items to add/insert/replace (required for append, prepend, insert, replace)",
    )
    at: int | str | None = Field(
        default=None,
        description="Index position or _key of the target item "
        "(required for insert, replace, remove)",
    )
    position: Literal["before", "after", "replace"] | None = Field(
        default=None,
        description="Position for insert operations relative to `at` (default: after)",
    )


class QueryArgs(ToolArgs):
    type: str | None = Field(default=None, description="Filter by document type")
    id: str | None = Field(default=None, description="Find document by ID")
    field: str | None = Field(default=None, description="Filter by a specific field value")
    value: Any = Field(default=None, description="Value to match for the field")
    limit: int = Field(default=10, ge=1, le=100, description="Maximum number of results (default: 10)")
    groq: str | None = Field(default=None, description="Custom GROQ query (overrides other parameters)")
    projection: str = Field(
        default="*",
        description='Fields to include in results (e.g., "title,description,_id" or "*")',
    )


class RelatedDocumentArgs(ToolArgs):
    document_id: str = Field(description="The Sanity document ID of the related document you want to fetch")


class ResolveReferencesArgs(ToolArgs):
    document_id: str = Field(description="The Sanity document ID of the document to resolve references for")
    reference_fields: list[str] = Field(
        default_factory=list,
        description='Optional reference fields to resolve (e.g., "relatedProjects"). '
        "If not specified, all reference fields are resolved.",
    )
    depth: int = Field(default=1, description="How many levels of references to resolve (default: 1, max: 2)")


class ReferencedDocumentsArgs(ToolArgs):
    document_id: str = Field(description="The Sanity document ID of the source document")
    reference_field: str = Field(description='The field containing references (e.g., "relatedProjects")')
    include_fields: list[str] | None = Field(
        default=None,
        description="Fields to include from the referenced documents (default: all fields)",
    )


class ListDocumentsByTypeArgs(ToolArgs):
    document_type: str = Field(description='The type of documents to list (e.g., "project", "skill")')
    limit: int = Field(default=100, ge=1, le=500, description="Maximum number of documents to return")
    offset: int = Field(default=0, ge=0, description="Number of documents to skip for pagination")
    order_by: str = Field(
        default="_createdAt",
        description='Field to sort by, prepend with "-" for descending (e.g., "-_createdAt")',
    )
    filter: str = Field(default="", description='Additional GROQ filter conditions (e.g., "isFeatured == true")')


class WriteFieldArgs(ToolArgs):
    document_id: str | None = Field(
        default=None, description="The Sanity document ID of the document you are editing"
    )
    field_path: str = Field(description='The path to the field (e.g., "title", "description")')
    value: Any = Field(description="The new value to set for the field")


class AddToArrayArgs(ToolArgs):
    document_id: str | None = Field(
        default=None, description="The Sanity document ID of the document you are editing"
    )
    array_path: str = Field(description='The path to the array field (e.g., "challenges", "technologies")')
    item: Any = Field(description="The item to add to the array")


class RemoveFromArrayArgs(ToolArgs):
    document_id: str | None = Field(
        default=None, description="The Sanity document ID of the document you are editing"
    )
    array_path: str = Field(description='The path to the array field (e.g., "challenges", "technologies")')
    item_key: str = Field(description="The _key of the item to remove")


class RepositoryDetailsArgs(ToolArgs):
    repo_name: str = Field(
        description='Repository name ("repo" for the portfolio owner, or "owner/repo")'
    )


# Studio schema payload sent with copilot requests


class SerializableSchemaType(ToolArgs):
    type: str
    title: str | None = None
    fields: list["SerializableField"] | None = None


class ReferenceInfo(ToolArgs):
    to: list[SerializableSchemaType] = Field(default_factory=list)


class SerializableField(ToolArgs):
    name: str
    title: str | None = None
    type: str
    description: str | None = None
    is_required: bool = False
    array_of: list[SerializableSchemaType] | None = None
    reference: ReferenceInfo | None = None
    fields: list["SerializableField"] | None = None
    options: dict[str, Any] | None = None


class SerializableSchema(ToolArgs):
    name: str
    title: str | None = None
    type: str = "document"
    fields: list[SerializableField] = Field(default_factory=list)


SerializableSchemaType.model_rebuild()
SerializableField.model_rebuild()
