import logging
from typing import Any, List, Type, TypeVar

import attrs
import cattrs
from cattrs import override
from cattrs.gen import make_dict_unstructure_fn

from azurerm_function_app.types import Json, JsonElement

log = logging.getLogger("azurerm.function_app")

AnyT = TypeVar("AnyT")

# the global converter instance: attributes not defined on the class are rejected
__converter = cattrs.Converter(forbid_extra_keys=True)

# ignore all private attributes
__converter.register_unstructure_hook_factory(
    attrs.has,
    lambda cls: make_dict_unstructure_fn(
        cls,
        __converter,
        _cattrs_omit_if_default=False,
        **{a.name: override(omit=True) for a in attrs.fields(cls) if a.name.startswith("_")},
    ),
)


def __strict(expected: Type[Any]) -> Any:
    # cattrs would happily turn "false" into True, values have to arrive with the right type
    def structure(value: Any, _: Any) -> Any:
        if not isinstance(value, expected):
            raise ValueError(f"Expected {expected.__name__}, got {type(value).__name__}")
        return value

    return structure


__converter.register_structure_hook(str, __strict(str))
__converter.register_structure_hook(bool, __strict(bool))
__converter.register_structure_hook(int, lambda v, _: v if isinstance(v, int) and not isinstance(v, bool) else int(v))


def to_json(node: Any) -> Json:
    """
    Use this method, if the given node is known as complex object,
    so the result will be a json object.
    """
    unstructured: Json = __converter.unstructure(node)
    return unstructured


def from_json(js: JsonElement, clazz: Type[AnyT]) -> AnyT:
    """
    Loads a json object into a python object.
    :param js: the json object to load.
    :param clazz: the type of the python object.
    :return: the loaded python object.
    """
    try:
        return __converter.structure(js, clazz)
    except Exception as e:
        log.debug(f"Can not deserialize json into class {clazz.__name__}: {js}. Error: {e}")
        raise


def structure_errors(error: Exception) -> List[str]:
    """
    Render an error raised by `from_json` as list of human readable messages.
    Each message names the offending path, e.g. `invalid value for type, expected bool @ $.enabled`.
    """
    if isinstance(error, cattrs.BaseValidationError):
        return cattrs.transform_error(error)
    return [str(error)]
