"""
Typed action calls.

Every action an agent can take is one variant of the closed ``ActionCall``
union, discriminated by its ``name`` field. Decision sources speak in
``(name, arguments)`` pairs; ``parse_action_call`` turns such a pair into a
variant or raises:

- ``UnknownActionError`` when the name is not in the union (schema drift on
  the decision-service side),
- ``pydantic.ValidationError`` when the arguments do not fit the variant.

The same models generate the function schemas sent to the decision service,
so the schema and the validator cannot drift apart.
"""

from __future__ import annotations

import copy
from enum import Enum
from typing import Annotated, Any, Dict, FrozenSet, List, Literal, Mapping, Type, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from .schemas import LifecycleStatus, Location, ResourceType, StructureType


class UnknownActionError(ValueError):
    """Raised when a decision names an action outside the supported set."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(
            f"Unknown action '{name}'. Supported actions: {', '.join(sorted(ACTION_MODELS))}"
        )


class CraftRecipe(str, Enum):
    WOODEN_TOOL = "wooden_tool"
    STONE_TOOL = "stone_tool"
    WOODEN_PICKAXE = "wooden_pickaxe"
    STONE_PICKAXE = "stone_pickaxe"


class _ActionCallBase(BaseModel):
    # Arguments may arrive in camelCase (e.g. toAgentId) from older schemas.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    agent_id: str = Field(..., description="Id of the acting agent")


class MoveCall(_ActionCallBase):
    """Move to a nearby tile within movement range. Cannot move into water."""

    name: Literal["move"] = "move"
    to: Location = Field(..., description="Target tile coordinate")


class CommunicateCall(_ActionCallBase):
    """Send a message to agents within your visibility radius. Messages are remembered and affect relationships."""

    name: Literal["communicate"] = "communicate"
    message: str = Field(..., min_length=1, max_length=200, description="The message to send (max 200 characters)")
    recipients: List[str] = Field(..., min_length=1, description="Ids of nearby agents to send the message to")


class GatherCall(_ActionCallBase):
    """Collect one unit of a resource from a nearby tile."""

    name: Literal["gather"] = "gather"
    resource: ResourceType = Field(..., description="Resource to gather")
    location: Location = Field(..., description="Tile holding the resource")


class CraftCall(_ActionCallBase):
    """Craft tools from resources in your inventory using a fixed recipe."""

    name: Literal["craft"] = "craft"
    recipe: CraftRecipe = Field(..., description="Recipe to craft")


class BuildCall(_ActionCallBase):
    """Build a structure on a nearby tile that has no structure yet."""

    name: Literal["build"] = "build"
    structure_type: StructureType = Field(..., description="Type of structure to build")
    location: Location = Field(..., description="Tile to build on")


class CreateCropFieldCall(_ActionCallBase):
    """Plant a crop field on an unoccupied grass tile."""

    name: Literal["create_crop_field"] = "create_crop_field"
    location: Location = Field(..., description="Grass tile to plant")


class HarvestCropCall(_ActionCallBase):
    """Harvest a mature, sufficiently watered crop field for food."""

    name: Literal["harvest_crop"] = "harvest_crop"
    location: Location = Field(..., description="Tile holding the crop field")


class GiveResourceCall(_ActionCallBase):
    """Give some of your resources to a nearby agent."""

    name: Literal["give_resource"] = "give_resource"
    to_agent_id: str = Field(..., description="Recipient agent id")
    resource: ResourceType = Field(..., description="Resource to give")
    quantity: int = Field(1, ge=1, description="How many units to give")


ActionCall = Annotated[
    Union[
        MoveCall,
        CommunicateCall,
        GatherCall,
        CraftCall,
        BuildCall,
        CreateCropFieldCall,
        HarvestCropCall,
        GiveResourceCall,
    ],
    Field(discriminator="name"),
]

_ACTION_ADAPTER: TypeAdapter[Any] = TypeAdapter(ActionCall)

ACTION_MODELS: Dict[str, Type[_ActionCallBase]] = {
    "move": MoveCall,
    "communicate": CommunicateCall,
    "gather": GatherCall,
    "craft": CraftCall,
    "build": BuildCall,
    "create_crop_field": CreateCropFieldCall,
    "harvest_crop": HarvestCropCall,
    "give_resource": GiveResourceCall,
}

CHILD_ACTIONS: FrozenSet[str] = frozenset({"move", "communicate"})


def allowed_actions(status: LifecycleStatus) -> FrozenSet[str]:
    """Children may only move and communicate; adults and elders may do everything."""
    if status == LifecycleStatus.CHILD:
        return CHILD_ACTIONS
    return frozenset(ACTION_MODELS)


def parse_action_call(name: str, arguments: Mapping[str, Any], agent_id: str) -> ActionCall:
    """Validate a raw ``(name, arguments)`` pair into a typed call.

    The acting agent id always wins over any id the decision source put in
    the arguments.
    """
    if name not in ACTION_MODELS:
        raise UnknownActionError(name)
    payload = {
        key: value
        for key, value in arguments.items()
        if key not in ("name", "agent_id", "agentId")
    }
    payload["name"] = name
    payload["agent_id"] = agent_id
    return _ACTION_ADAPTER.validate_python(payload)


def _inline_refs(node: Any, defs: Mapping[str, Any]) -> Any:
    if isinstance(node, dict):
        ref = node.get("$ref")
        if isinstance(ref, str) and ref.startswith("#/$defs/"):
            resolved = copy.deepcopy(defs[ref.split("/")[-1]])
            extra = {k: v for k, v in node.items() if k != "$ref"}
            resolved.update(extra)
            return _inline_refs(resolved, defs)
        return {key: _inline_refs(value, defs) for key, value in node.items() if key != "$defs"}
    if isinstance(node, list):
        return [_inline_refs(item, defs) for item in node]
    return node


def _strip_titles(node: Any) -> Any:
    if isinstance(node, dict):
        return {key: _strip_titles(value) for key, value in node.items() if key != "title"}
    if isinstance(node, list):
        return [_strip_titles(item) for item in node]
    return node


def action_parameters_schema(model: Type[_ActionCallBase]) -> Dict[str, Any]:
    """JSON schema of a call's arguments, without ``name``/``agent_id`` and with refs inlined."""
    schema = model.model_json_schema(by_alias=False)
    defs = schema.get("$defs", {})
    schema = _strip_titles(_inline_refs(schema, defs))
    properties = {
        key: value for key, value in schema.get("properties", {}).items() if key not in ("name", "agent_id")
    }
    required = [key for key in schema.get("required", []) if key not in ("name", "agent_id")]
    return {"type": "object", "properties": properties, "required": required}


def tool_schemas(status: LifecycleStatus) -> List[Dict[str, Any]]:
    """OpenAI-style function schemas for the actions ``status`` may take."""
    allowed = allowed_actions(status)
    schemas: List[Dict[str, Any]] = []
    for name, model in ACTION_MODELS.items():
        if name not in allowed:
            continue
        schemas.append(
            {
                "type": "function",
                "function": {
                    "name": name,
                    "description": (model.__doc__ or "").strip(),
                    "parameters": action_parameters_schema(model),
                },
            }
        )
    return schemas


__all__ = [
    "ActionCall",
    "ACTION_MODELS",
    "CHILD_ACTIONS",
    "CraftRecipe",
    "MoveCall",
    "CommunicateCall",
    "GatherCall",
    "CraftCall",
    "BuildCall",
    "CreateCropFieldCall",
    "HarvestCropCall",
    "GiveResourceCall",
    "UnknownActionError",
    "allowed_actions",
    "parse_action_call",
    "action_parameters_schema",
    "tool_schemas",
]
