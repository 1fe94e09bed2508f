from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Backend payloads are camelCase; attributes here stay snake_case."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_wire(self, **kwargs) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json", **kwargs)
