from pydantic import BaseModel
from typing import Optional


class UserOut(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    active: bool = True

    class Config:
        from_attributes = True
