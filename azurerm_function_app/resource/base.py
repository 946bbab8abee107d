from __future__ import annotations

import logging
import re
from typing import Any, Callable, ClassVar, Dict, Iterable, List, Optional, Type, TypeVar

import attrs
from attr import define, field, frozen

from azurerm_function_app.errors import ConfigValidationError, InvalidResourceIdError
from azurerm_function_app.json import from_json, structure_errors, to_json
from azurerm_function_app.json_bender import Bender, bend
from azurerm_function_app.types import Json
from azurerm_function_app.utils import case_insensitive_eq, is_empty

log = logging.getLogger("azurerm.function_app")

Validator = Callable[[str, Any], List[str]]
Comparator = Callable[[Any, Any], bool]


@frozen
class AzureResourceId:
    """
    A parsed Azure Resource Manager id.

    Example:
    For the resource ID "/subscriptions/{sub}/resourceGroups/{rg}/providers/Microsoft.Web/sites/{name}",
    `subscription_id` is {sub}, `resource_group` is {rg}, `provider` is Microsoft.Web
    and `path` is {"sites": {name}}.
    """

    subscription_id: str
    resource_group: str
    provider: Optional[str] = None
    path: Dict[str, str] = field(factory=dict)

    @staticmethod
    def parse(resource_id: Optional[str]) -> AzureResourceId:
        if not resource_id or not resource_id.startswith("/"):
            raise InvalidResourceIdError(f"Resource id must be an absolute path: {resource_id!r}")
        components = resource_id.strip("/").split("/")
        if len(components) % 2 != 0:
            raise InvalidResourceIdError(f"The number of path segments is not divisible by 2 in {resource_id!r}")

        subscription_id: Optional[str] = None
        resource_group: Optional[str] = None
        provider: Optional[str] = None
        path: Dict[str, str] = {}
        for key, value in zip(components[0::2], components[1::2]):
            if key == "" or value == "":
                raise InvalidResourceIdError(f"Key/Value cannot be empty strings. Key: {key!r}, Value: {value!r}")
            if key == "subscriptions":
                subscription_id = value
            elif key == "resourceGroups":
                resource_group = value
            elif key == "providers":
                provider = value
            else:
                path[key] = value

        if subscription_id is None:
            raise InvalidResourceIdError(f"No subscription ID found in: {resource_id!r}")
        if resource_group is None:
            raise InvalidResourceIdError(f"No resource group name found in: {resource_id!r}")
        return AzureResourceId(subscription_id, resource_group, provider, path)

    def extract_part(self, part: str) -> str:
        if (value := self.path.get(part)) is None:
            raise InvalidResourceIdError(f"Resource id has no {part!r} segment: {self}")
        return value

    def __str__(self) -> str:
        result = f"/subscriptions/{self.subscription_id}/resourceGroups/{self.resource_group}"
        if self.provider:
            result += f"/providers/{self.provider}"
        return result + "".join(f"/{k}/{v}" for k, v in self.path.items())


# region validators


def validate_app_service_name(key: str, value: Any) -> List[str]:
    if not re.fullmatch(r"[0-9a-zA-Z-]{1,60}", value):
        return [f"{key}: {value!r} may only contain alphanumeric characters and dashes and up to 60 characters"]
    return []


def validate_resource_group_name(key: str, value: Any) -> List[str]:
    errors = []
    if len(value) > 80:
        errors.append(f"{key}: may not exceed 80 characters in length")
    if value.endswith("."):
        errors.append(f"{key}: may not end with a period")
    if not re.fullmatch(r"[-\w._()]+", value):
        errors.append(f"{key}: may only contain alphanumeric characters, dash, underscores, parentheses and periods")
    return errors


def validate_tags(key: str, value: Any) -> List[str]:
    errors = []
    if len(value) > 15:
        errors.append(f"{key}: a maximum of 15 tags can be applied to each ARM resource")
    for tag_key, tag_value in value.items():
        if len(tag_key) > 512:
            errors.append(f"{key}: the maximum length for a tag key is 512 characters: {tag_key!r} is too long")
        if len(tag_value) > 256:
            errors.append(f"{key}: the maximum length for a tag value is 256 characters: value of {tag_key!r}")
    return errors


def one_of(values: Iterable[str], ignore_case: bool = False) -> Validator:
    allowed = list(values)
    matches: Comparator = case_insensitive_eq if ignore_case else (lambda left, right: bool(left == right))

    def validate(key: str, value: Any) -> List[str]:
        if any(matches(value, a) for a in allowed):
            return []
        return [f"{key}: expected one of {allowed}, got {value!r}"]

    return validate


# endregion


ResourceModelType = TypeVar("ResourceModelType", bound="ResourceModel")


@define(eq=False, slots=False)
class ResourceModel:
    """
    Base class of a declarative resource.

    Each attribute is an attrs field. The field metadata describes the attribute:
    - description: human readable description
    - required: the attribute has to be defined in the desired configuration
    - force_new: a change of this attribute requires to replace the resource
    - computed: if not defined in the desired configuration, the remote value is kept
    - read_only: the attribute is only set by the remote side
    - sensitive: the value must not show up in logs
    """

    kind: ClassVar[str] = "resource_model"
    # The mapping to transform the incoming API json into the internal representation.
    mapping: ClassVar[Dict[str, Bender]] = {}
    # Additional validation per attribute, only applied to defined values.
    validators: ClassVar[Dict[str, Validator]] = {}
    # Custom comparison of attribute values. Default is ==.
    comparators: ClassVar[Dict[str, Comparator]] = {}

    @classmethod
    def from_config(cls: Type[ResourceModelType], js: Json) -> ResourceModelType:
        """
        Parse and validate a desired configuration.
        All problems are collected and raised together as ConfigValidationError.
        """
        try:
            instance = from_json(js, cls)
        except Exception as e:
            raise ConfigValidationError(structure_errors(e)) from e
        if errors := instance.validation_errors():
            raise ConfigValidationError(errors)
        return instance

    @classmethod
    def from_api(cls: Type[ResourceModelType], js: Json) -> ResourceModelType:
        return from_json(bend(cls.mapping, js), cls)

    def to_json(self) -> Json:
        return to_json(self)

    def validation_errors(self) -> List[str]:
        errors: List[str] = []
        for attr in attrs.fields(type(self)):
            value = getattr(self, attr.name)
            if attr.metadata.get("read_only") and value is not None:
                errors.append(f"{attr.name}: read only attribute can not be set")
            elif attr.metadata.get("required") and (value is None or value == ""):
                errors.append(f"{attr.name}: required attribute is not defined")
            elif value is not None and (validator := self.validators.get(attr.name)):
                errors.extend(validator(attr.name, value))
        return errors

    def has_change(self, key: str, previous: Optional[ResourceModel]) -> bool:
        attr = attrs.fields_dict(type(self))[key]
        if attr.metadata.get("read_only"):
            return False
        desired = getattr(self, key)
        if attr.metadata.get("computed") and desired is None:
            return False
        before = getattr(previous, key) if previous is not None else None
        if is_empty(desired) and is_empty(before):
            return False
        if compare := self.comparators.get(key):
            return not compare(desired, before)
        return bool(desired != before)

    def replacement_fields(self, previous: Optional[ResourceModel]) -> List[str]:
        """
        List all force new attributes that are changed compared to the previous state.
        A resource without previous state is created, not replaced.
        """
        if previous is None:
            return []
        return [
            attr.name
            for attr in attrs.fields(type(self))
            if attr.metadata.get("force_new") and self.has_change(attr.name, previous)
        ]


@define(eq=False, slots=False)
class ResourceData:
    """
    One managed resource as handed in by the host framework.

    config: the desired configuration of the current apply.
    state: the last known remote state. None, if the resource was never read.
    id: the Azure resource id. None, if the resource does not exist (yet).
    """

    config: ResourceModel
    state: Optional[ResourceModel] = None
    id: Optional[str] = None

    def has_change(self, key: str) -> bool:
        return self.config.has_change(key, self.state)

    def requires_replacement(self) -> List[str]:
        return self.config.replacement_fields(self.state)

    def set_id(self, resource_id: Optional[str]) -> None:
        self.id = resource_id
        if resource_id is None:
            self.state = None

    @property
    def resource_id(self) -> AzureResourceId:
        return AzureResourceId.parse(self.id)
