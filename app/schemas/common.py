from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class PortalModel(BaseModel):
    """Wire model: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EntityModel(PortalModel):
    """Immutable snapshot fetched from the billing system."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class MessageResponse(PortalModel):
    message: str
