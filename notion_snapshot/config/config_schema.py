"""Pydantic models for configuration validation."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class NotionConfig(BaseModel):
    """Notion API configuration."""

    api_key: Optional[str] = Field(default=None, description="Notion integration token")
    root_id: Optional[str] = Field(
        default=None, description="Page or database ID the scan starts from"
    )


class ScanConfig(BaseModel):
    """Traversal settings. Frozen once a scan starts."""

    model_config = ConfigDict(frozen=True)

    concurrency: int = Field(default=3, ge=1, description="Maximum in-flight work items")
    include_row_values: bool = Field(
        default=False, description="Query sample rows and extract their property values"
    )
    include_comments: bool = Field(
        default=False, description="Collect top-level comments of the root page"
    )
    max_blocks: int = Field(
        default=0, ge=0, description="Global cap on fetched blocks (0 = unlimited)"
    )
    follow_relations: bool = Field(
        default=True, description="Also inspect databases targeted by relation properties"
    )
    max_retries: int = Field(default=5, ge=0, description="Retries on rate-limit errors")
    base_delay_ms: int = Field(default=300, ge=0, description="Initial backoff delay")
    page_size: int = Field(default=100, ge=1, le=100, description="Pagination page size")
    sample_row_limit: int = Field(default=3, ge=1, le=100, description="Sample rows per database")
    relation_title_limit: int = Field(
        default=5, ge=0, description="Related page titles resolved per relation value"
    )
    relation_title_concurrency: int = Field(
        default=3, ge=1, description="Upper bound for relation title lookups"
    )

    @property
    def relation_lookup_limit(self) -> int:
        """Concurrency used for relation title lookups."""
        return min(self.relation_title_concurrency, self.concurrency)


class OutputConfig(BaseModel):
    """Output locations."""

    directory: str = Field(default="outputs", description="Directory for scan outputs")
    history_directory: str = Field(
        default="history", description="Directory for output snapshots"
    )

    @field_validator("directory", "history_directory")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Reject empty directory names."""
        if not v or not v.strip():
            raise ValueError("Directory must not be empty")
        return v


class AppConfig(BaseModel):
    """Main application configuration."""

    notion: NotionConfig = Field(default_factory=NotionConfig, description="Notion configuration")
    scan: ScanConfig = Field(default_factory=ScanConfig, description="Scan configuration")
    output: OutputConfig = Field(default_factory=OutputConfig, description="Output configuration")

    def validate(self) -> None:
        """Validate that everything a scan needs is configured."""
        if not self.notion.api_key:
            raise ValueError(
                "Notion API key is required (config notion.api_key or NOTION_TOKEN)"
            )
        if not self.notion.root_id:
            raise ValueError("Root ID is required (config notion.root_id or PAGE_ID)")
