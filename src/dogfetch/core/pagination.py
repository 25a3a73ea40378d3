from typing import Any, Dict, Optional
from pydantic import BaseModel


class CursorConfig(BaseModel):
    # Configuration for cursor-based pagination (e.g., ?page[cursor]=abc123)
    cursor_param: str = "page[cursor]"          # Parameter name in request URL
    limit_param: str = "page[limit]"            # Parameter name for page size
    cursor_field: str = "meta.page.after"       # Dotted path of the next cursor in response JSON


class CursorStrategy:
    # Strategy for cursor-based pagination where each response includes a token for the next page.
    # The cursor is passed through untouched, never decoded.

    def __init__(self, config: Optional[CursorConfig] = None):
        self.config = config or CursorConfig()

    def get_initial_params(
        self,
        base_params: Dict[str, Any],
        page_size: int,
        cursor: str = ""
    ) -> Dict[str, Any]:
        # Page size always; cursor only when resuming or past the first page
        params = base_params.copy()
        params[self.config.limit_param] = page_size
        if cursor:
            params[self.config.cursor_param] = cursor
        return params

    def get_next_cursor(self, response: Dict[str, Any]) -> str:
        # Walk the dotted path; any missing level means the sequence is exhausted
        value: Any = response
        for key in self.config.cursor_field.split('.'):
            if not isinstance(value, dict):
                return ""
            value = value.get(key)
        return value if isinstance(value, str) else ""
