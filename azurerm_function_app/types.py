from typing import Any, Dict, Mapping, Sequence, Union

# recursive type definitions are not supported, so the value side stays loose
Json = Dict[str, Any]
JsonElement = Union[str, int, float, bool, None, Mapping[str, Any], Sequence[Any]]
