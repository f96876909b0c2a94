from pydantic import BaseModel


class UserOut(BaseModel):
    id: str
    email: str
    full_name: str
    role: str
    is_active: bool
    organization_id: str

    model_config = {"from_attributes": True}
