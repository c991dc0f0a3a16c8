from typing import Any, Dict, Optional

LAST_RESPONSE_KEY = "last_response"


class VariableEnvironment:
    """
    Variables of a single run. Declared workflow variables are documentation
    only, nothing here is type checked.
    """

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._values: Dict[str, Any] = dict(initial or {})

    def get(self, name: str, default: Any = None) -> Any:
        return self._values.get(name, default)

    def set(self, name: str, value: Any) -> None:
        self._values[name] = value

    def snapshot(self) -> Dict[str, Any]:
        return dict(self._values)

    def __contains__(self, name: str) -> bool:
        return name in self._values

    def __len__(self) -> int:
        return len(self._values)
