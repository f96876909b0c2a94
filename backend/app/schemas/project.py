from pydantic import BaseModel


class ProjectOut(BaseModel):
    id: str
    name: str
    description: str | None
    is_archived: bool = False
    my_role: str | None = None   # caller's project role, if any

    model_config = {"from_attributes": True}
