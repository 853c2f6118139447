from uuid import UUID

from pydantic import BaseModel, ConfigDict


class IDModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
