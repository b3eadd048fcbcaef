"""
Data models and schemas for the compile service.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator

MAX_CODE_LENGTH = 10000


class JobStatus(str, Enum):
    """Job lifecycle status."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CompileRequest(_CamelModel):
    """Source submission."""

    code: str = Field(
        min_length=1,
        max_length=MAX_CODE_LENGTH,
        description="Single Java source unit with one main method"
    )
    callback_url: HttpUrl | None = Field(
        default=None,
        alias="callbackUrl",
        description="URL that receives the result once the job finishes"
    )

    @field_validator("code")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Code must not be blank")
        return v


class CompileResponse(_CamelModel):
    """Returned immediately after submission."""

    job_id: str = Field(alias="jobId", description="Job identifier")


class CompileResultResponse(_CamelModel):
    """Current state of a job."""

    job_id: str = Field(alias="jobId")
    status: JobStatus
    success: bool | None = None
    output: str | None = None


class SlotInfo(BaseModel):
    index: int
    container: str
    usage: int
    max_usage: int
    epoch: int


class HealthResponse(BaseModel):
    status: str
    version: str
    slots: list[SlotInfo] = Field(default_factory=list)
    pending_jobs: int = 0


class ErrorResponse(BaseModel):
    """Error body."""

    error: str
    code: str
    details: str | None = None
