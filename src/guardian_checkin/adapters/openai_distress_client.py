"""OpenAI chat completions client for distress scoring."""

import json
from dataclasses import dataclass

from openai import AsyncOpenAI

from guardian_checkin.services.classifier import DistressClient


@dataclass
class OpenAIDistressClient(DistressClient):
    """Distress client backed by OpenAI JSON-mode chat completions."""

    client: AsyncOpenAI
    temperature: float = 0.2

    @classmethod
    def create(cls, api_key: str) -> "OpenAIDistressClient":
        """Create an OpenAI distress client."""
        return cls(client=AsyncOpenAI(api_key=api_key))

    async def score(self, *, model: str, prompt: str, text: str) -> dict[str, object]:
        """Ask the model for a ``{"score", "reason"}`` JSON object."""
        response = await self.client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": prompt},
                {"role": "user", "content": f'User said: "{text}"'},
            ],
            response_format={"type": "json_object"},
            temperature=self.temperature,
        )
        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise RuntimeError("OpenAI returned an empty response")
        return json.loads(content)
