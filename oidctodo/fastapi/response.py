from typing import Any

import msgspec
from fastapi.responses import Response


class MsgspecResponse(Response):
    """JSON response encoded with msgspec, for Struct payloads."""

    media_type = "application/json"

    def render(self, content: Any) -> bytes:
        return msgspec.json.encode(content)
