from pydantic import BaseModel, ConfigDict, Field


class FileIn(BaseModel):
    path: str
    content: str


class BatchCreateRequest(BaseModel):
    files: list[FileIn]
    message: str
    branch: str = "main"


class UpdateFileRequest(BaseModel):
    content: str
    message: str
    sha: str | None = None
    branch: str | None = None


class CreateFileRequest(BaseModel):
    content: str
    message: str
    branch: str | None = None


class CreateRepoRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: str | None = None
    private: bool = False
    auto_init: bool = False


class CreateBranchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    base_branch: str = Field(alias="baseBranch")
    new_branch: str = Field(alias="newBranch")
