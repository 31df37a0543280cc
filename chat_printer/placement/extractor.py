"""
Text-to-placement extraction through an OpenAI-compatible chat completions API.

The model is asked for a JSON object matching `ExtractedPlacement`; the reply
is validated with pydantic before it becomes a `Placement`. Any HTTP or
validation failure raises `PlacementError` so the caller can fall back to the
local parser.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError

from chat_printer.core.config import Settings
from chat_printer.core.errors import PlacementError
from chat_printer.placement.model import Placement

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10.0


class ExtractedPlacement(BaseModel):
    rest_text: str = Field(description="The rest of the text")
    x: int = Field(description="The x location")
    y: int = Field(description="The y location")
    size: int = Field(description="The size")


def _response_format() -> Dict[str, Any]:
    return {
        "type": "json_schema",
        "json_schema": {
            "name": "extract_schema",
            "schema": {
                "type": "object",
                "properties": {
                    "rest_text": {"description": "The rest of the text", "type": "string"},
                    "x": {"description": "The x location", "type": "integer"},
                    "y": {"description": "The y location", "type": "integer"},
                    "size": {"description": "The size", "type": "integer"},
                },
                "required": ["rest_text", "x", "y", "size"],
                "additionalProperties": False,
            },
        },
    }


class OpenAIPlacementExtractor:
    """
    Calls the chat completions endpoint configured in Settings.
    """

    def __init__(self, settings: Settings, client: Optional[httpx.Client] = None) -> None:
        self.settings = settings
        self._client = client or httpx.Client(timeout=REQUEST_TIMEOUT)

    def build_request(self, text: str) -> Dict[str, Any]:
        return {
            "model": self.settings.model,
            "messages": [
                {"role": "system", "content": self.settings.prompt},
                {"role": "user", "content": text},
            ],
            "response_format": _response_format(),
        }

    def extract(self, text: str) -> Placement:
        """
        Raises:
            PlacementError: The request failed or the reply was not a valid placement.
        """
        try:
            resp = self._client.post(
                self.settings.openai_url,
                json=self.build_request(text),
                headers={"Authorization": f"Bearer {self.settings.openai_api_key}"},
            )
            resp.raise_for_status()
            content = resp.json()["choices"][0]["message"]["content"]
            extracted = ExtractedPlacement.model_validate_json(content)
        except httpx.HTTPError as e:
            raise PlacementError(f"Placement request failed: {e}") from e
        except (KeyError, IndexError, TypeError, json.JSONDecodeError, ValidationError) as e:
            raise PlacementError(f"Unexpected placement reply: {e}") from e

        placement = Placement(text=extracted.rest_text, x=extracted.x, y=extracted.y, size=extracted.size)
        placement = placement.clamped(self.settings.width, self.settings.height, self.settings.max_size)
        logger.info("Extracted placement: %s", placement)
        return placement

    def close(self) -> None:
        self._client.close()


__all__ = ["ExtractedPlacement", "OpenAIPlacementExtractor"]
