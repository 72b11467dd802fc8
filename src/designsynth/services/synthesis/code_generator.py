"""Code Generator
================

Boundary to the code generation model. Renders a prompt, calls OpenRouter
and recovers a list of ``GeneratedFile`` values from the answer.

The prompt is a ``PromptConfig`` value handed in by the caller; nothing about
the prompt is read from module state.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from jinja2 import Environment

from designsynth.config.config_manager import SynthesisSettings, get_settings
from designsynth.constants import TargetFramework
from designsynth.services.service_base import AdapterUnavailable, MalformedResponse
from designsynth.utils.json_extraction import extract_json_payload

from .api_client import OpenRouterClient, get_api_client
from .artifacts import GeneratedFile
from .config import SynthesisOptions
from .templating import get_template_environment, render_template

logger = logging.getLogger(__name__)

# SDK versions matching the bundled Flutter template project
FLUTTER_PROMPT_METADATA: Dict[str, Any] = {
    'dartSdkVersion': '2.19.0',
    'flutterVersion': '3.24.5',
    'useCompatibleDependencies': True,
    'useTemplate': True,
}

SYSTEM_PROMPT = (
    "You are a senior front-end engineer. You answer with a single JSON array of "
    "files and nothing else."
)

# Patterns that indicate model is asking for confirmation instead of generating
CONFIRMATION_PATTERNS = [
    r"would you like me to",
    r"shall i (proceed|continue|generate)",
    r"do you want me to",
    r"should i (proceed|continue|generate)",
    r"let me know if you",
    r"ready to (generate|create|proceed)",
]

CONFIRMATION_REGEX = re.compile('|'.join(CONFIRMATION_PATTERNS), re.IGNORECASE)


def _looks_like_file_list(value: Any) -> bool:
    return isinstance(value, list) and (not value or any(isinstance(item, dict) for item in value))


@dataclass
class PromptConfig:
    """Everything the adapter needs to phrase one request.

    Attributes:
        template: Jinja2 template name under ``misc/templates``
        model: OpenRouter model id (settings default when None)
        temperature: Sampling temperature
        max_tokens: Completion token limit
        system: System message
        metadata: Extra keys merged into the serialized document as ``_meta``
    """
    template: str
    model: Optional[str] = None
    temperature: float = 0.3
    max_tokens: int = 32000
    system: str = SYSTEM_PROMPT
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def for_target(cls, target: TargetFramework, settings: Optional[SynthesisSettings] = None) -> 'PromptConfig':
        """Default prompt for a target framework."""
        settings = settings or get_settings()
        return cls(
            template=f"prompts/{target.value}.md.jinja2",
            model=settings.model,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            metadata=dict(FLUTTER_PROMPT_METADATA) if target == TargetFramework.FLUTTER else {},
        )


class CodeGenerator:
    """Generates source files for a design document or an existing bundle."""

    def __init__(
        self,
        client: Optional[OpenRouterClient] = None,
        env: Optional[Environment] = None,
        settings: Optional[SynthesisSettings] = None,
    ):
        self.client = client or get_api_client()
        self.env = env or get_template_environment()
        self.settings = settings or get_settings()

    async def generate(self, document_json: str, options: SynthesisOptions,
                       prompt: PromptConfig) -> List[GeneratedFile]:
        """Generate files for a serialized design document.

        Raises:
            AdapterUnavailable: Service not configured or unreachable
            MalformedResponse: Answer holds no recoverable file list
        """
        document = self._with_metadata(document_json, prompt.metadata)
        text = render_template(self.env, prompt.template, document=document, bundle=None,
                               options=options, meta=prompt.metadata)
        return await self._complete(text, prompt)

    async def generate_from_bundle(self, files: Sequence[GeneratedFile], options: SynthesisOptions,
                                   prompt: PromptConfig) -> List[GeneratedFile]:
        """Regenerate or complete an existing file bundle."""
        bundle = json.dumps([f.to_dict() for f in files], indent=2, ensure_ascii=False)
        text = render_template(self.env, prompt.template, document=None, bundle=bundle,
                               options=options, meta=prompt.metadata)
        return await self._complete(text, prompt)

    def _with_metadata(self, document_json: str, metadata: Dict[str, Any]) -> str:
        if not metadata:
            return document_json
        try:
            data = json.loads(document_json)
        except json.JSONDecodeError:
            logger.warning("Design document is not JSON; sending it without _meta")
            return document_json
        if not isinstance(data, dict):
            return document_json
        return json.dumps({**data, '_meta': metadata}, ensure_ascii=False)

    async def _complete(self, user_prompt: str, prompt: PromptConfig) -> List[GeneratedFile]:
        if not self.client.configured:
            raise AdapterUnavailable("Code generation is not configured (OPENROUTER_API_KEY missing)")

        model = prompt.model or self.settings.model
        messages = [
            {"role": "system", "content": prompt.system},
            {"role": "user", "content": user_prompt},
        ]
        content = await self._ask(model, messages, prompt)

        if self._is_confirmation_seeking(content):
            logger.warning("Model asking for confirmation; responding with 'Yes, proceed'")
            messages.append({"role": "assistant", "content": content})
            messages.append({"role": "user", "content": self._get_confirmation_response()})
            content = await self._ask(model, messages, prompt)

        files = self.parse_files(content)
        logger.info(f"Code generation returned {len(files)} file(s)")
        return files

    async def _ask(self, model: str, messages: List[Dict[str, str]], prompt: PromptConfig) -> str:
        success, response, status = await self.client.chat_completion(
            model=model,
            messages=messages,
            temperature=prompt.temperature,
            max_tokens=prompt.max_tokens,
            timeout=self.settings.generation_timeout,
        )
        if not success:
            error = response.get('error', 'Unknown error')
            if isinstance(error, dict):
                error = error.get('message', str(error))
            raise AdapterUnavailable(f"Code generation failed ({status}): {error}")

        if self._get_finish_reason(response) == 'length':
            logger.warning("Code generation response truncated (finish_reason=length)")
        return self._extract_content(response)

    @staticmethod
    def parse_files(content: str) -> List[GeneratedFile]:
        """Recover ``[{filepath, filename, filecontent}, ...]`` from model output.

        Entries missing a name or content are skipped with a warning.

        Raises:
            MalformedResponse: No array found, or no entry is usable
        """
        try:
            payload = extract_json_payload(content, '[', accept=_looks_like_file_list)
        except ValueError as e:
            raise MalformedResponse(f"Code generation answer is not a file list: {e}", raw=content[:2000]) from e
        if not isinstance(payload, list):
            raise MalformedResponse("Code generation answer is not a JSON array", raw=content[:2000])

        files = []
        for index, item in enumerate(payload):
            try:
                files.append(GeneratedFile.from_dict(item))
            except ValueError as e:
                logger.warning(f"Skipping generated entry {index}: {e}")
        if payload and not files:
            raise MalformedResponse("No usable file entries in code generation answer", raw=content[:2000])
        return files

    def _extract_content(self, response: Dict) -> str:
        """Extract content from API response."""
        choices = response.get('choices', [])
        if not choices:
            return ""
        return (choices[0].get('message', {}).get('content') or '').strip()

    def _get_finish_reason(self, response: Dict) -> str:
        choices = response.get('choices', [])
        if not choices:
            return ""
        return (choices[0].get('finish_reason') or choices[0].get('native_finish_reason') or '').strip()

    def _is_confirmation_seeking(self, content: str) -> bool:
        """Short answers asking "Would you like me to generate...?" instead of code."""
        if not content or len(content) > 2000:
            return False
        if content.lstrip().startswith('[') or '```' in content:
            return False
        return bool(CONFIRMATION_REGEX.search(content))

    def _get_confirmation_response(self) -> str:
        return (
            "Yes, generate the complete code now. Output ONLY the JSON array of files, "
            "no explanations or questions."
        )
