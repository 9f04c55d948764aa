from pydantic import BaseModel, ConfigDict, Field, field_validator


class AddCartItemIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    course_id: str = Field(alias="courseId", min_length=1)
    quantity: int = Field(default=1, ge=1)

    @field_validator("course_id", mode="before")
    @classmethod
    def _id_as_str(cls, v):
        return str(v) if v is not None else v


class UpdateCartItemIn(BaseModel):
    quantity: int = Field(ge=1)
