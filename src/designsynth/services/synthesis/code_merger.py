"""Code Merger
===========

Reconciles scaffold boilerplate with AI-authored code, one file per unit.

For TypeScript unit files the output is built from:
1. the scaffold's import block, then AI imports not already present
2. any AI declarations between its imports and its class (interfaces, consts)
3. the scaffold's decorator call (``@Component({...})``), with entries of
   the AI metadata ``imports`` array unioned in
4. ``export class <ScaffoldName>`` with the AI heritage clause
5. the AI class body

Markup and stylesheet files (``.html``, ``.css``, ``.scss``) are replaced by
their AI counterpart. When the AI class body cannot be isolated the AI file is
emitted unchanged; when there is no AI counterpart the scaffold passes through.
"""

import logging
import re
from typing import Dict, Iterable, List, Optional, Tuple

from designsynth.services.service_base import MergeExtractionFailure
from designsynth.utils.json_extraction import strip_code_fences

from .artifacts import GeneratedFile, MergedUnit
from .source_scanner import SourceOutline, ensure_import, ensure_metadata_entry

logger = logging.getLogger(__name__)

REPLACEABLE_EXTENSIONS = frozenset({'html', 'css', 'scss', 'sass', 'less'})


class CodeMerger:
    """Merges AI files into scaffolded unit files."""

    def merge_files(
        self,
        scaffold_files: Iterable[GeneratedFile],
        ai_files: Dict[str, GeneratedFile],
    ) -> Tuple[List[MergedUnit], Dict[str, GeneratedFile]]:
        """Merge every scaffold file with its AI counterpart (matched by relative path).

        Args:
            scaffold_files: Scaffold output for one or more units
            ai_files: AI files keyed by ``relative_path``

        Returns:
            Tuple of (merged units, AI files that had no scaffold counterpart)
        """
        remaining = dict(ai_files)
        merged = []
        for scaffold in scaffold_files:
            ai = remaining.pop(scaffold.relative_path, None)
            merged.append(self.merge_unit(scaffold, ai))
        return merged, remaining

    def merge_unit(self, scaffold: GeneratedFile, ai: Optional[GeneratedFile]) -> MergedUnit:
        """Merge one scaffold file with its optional AI counterpart."""
        scaffold_imports = [s.text for s in SourceOutline(scaffold.filecontent).imports] \
            if scaffold.extension == 'ts' else []

        if ai is None:
            return MergedUnit(scaffold, None, scaffold, scaffold_imports, [], 'scaffold')

        if scaffold.extension in REPLACEABLE_EXTENSIONS:
            output = scaffold.with_content(strip_code_fences(ai.filecontent))
            return MergedUnit(scaffold, ai, output, scaffold_imports, [], 'ai_replace')

        if scaffold.extension != 'ts':
            return MergedUnit(scaffold, ai, scaffold.with_content(ai.filecontent), scaffold_imports, [], 'ai_replace')

        ai_text = strip_code_fences(ai.filecontent)
        ai_imports = [s.text for s in SourceOutline(ai_text).imports]
        try:
            content = self.merge_source(scaffold.filecontent, ai_text)
        except MergeExtractionFailure as e:
            logger.warning(f"Merge extraction failed for {scaffold.relative_path}, keeping AI file: {e}")
            return MergedUnit(scaffold, ai, scaffold.with_content(ai.filecontent),
                              scaffold_imports, ai_imports, 'ai_passthrough')

        if content is None:
            # Scaffold has no class (route tables, plain modules): AI version wins
            return MergedUnit(scaffold, ai, scaffold.with_content(ai_text), scaffold_imports, ai_imports, 'ai_replace')

        return MergedUnit(scaffold, ai, scaffold.with_content(content), scaffold_imports, ai_imports, 'merged')

    def merge_source(self, scaffold_text: str, ai_text: str) -> Optional[str]:
        """Merge two TypeScript sources.

        Returns:
            Merged text, or None when the scaffold has no class to merge into

        Raises:
            MergeExtractionFailure: When the AI class body cannot be isolated
        """
        scaffold = SourceOutline(scaffold_text)
        if scaffold.cls is None:
            return None
        ai = SourceOutline(ai_text)
        if ai.cls is None:
            raise MergeExtractionFailure("No class declaration in AI file")
        if ai.cls.end <= ai.cls.brace:
            raise MergeExtractionFailure(f"Unbalanced class body in {ai.cls.name}")

        parts = []
        imports = scaffold.import_block
        if imports:
            parts.append(imports)

        preamble = self._ai_preamble(ai)
        if preamble:
            parts.append(preamble)

        declaration = []
        if scaffold.decorator_call:
            declaration.append(scaffold.decorator_call)
        heritage = self._heritage_clause(ai)
        declaration.append(f"export class {scaffold.cls.name}{heritage} {{{ai.body}}}")
        parts.append('\n'.join(declaration))

        merged = '\n\n'.join(parts) + '\n'
        merged = self._union_imports(merged, ai)
        merged = self._union_metadata_imports(merged, ai)
        return merged

    def _ai_preamble(self, ai: SourceOutline) -> str:
        """AI declarations between the import block and the decorator or class."""
        start = ai.imports[-1].end if ai.imports else 0
        end = ai.decorator.start if ai.decorator else ai.cls.start
        if end <= start:
            return ''
        return ai.text[start:end].strip()

    def _heritage_clause(self, ai: SourceOutline) -> str:
        header = ai.masked[ai.cls.start:ai.cls.brace]
        match = re.search(r'\b(extends|implements)\b', header)
        if not match:
            return ''
        return ' ' + ' '.join(ai.text[ai.cls.start + match.start():ai.cls.brace].split())

    def _union_imports(self, merged: str, ai: SourceOutline) -> str:
        for statement in ai.imports:
            if not statement.names:
                if statement.text not in merged:
                    merged = self._append_import_line(merged, statement.text)
                continue
            braced = '{' in statement.text and not statement.text.startswith('import type')
            if braced and not re.match(r'import\s+[\w$]+\s*,', statement.text):
                for name in statement.names:
                    merged = ensure_import(merged, name, statement.module)
            else:
                current = SourceOutline(merged).imported_names
                if any(name not in current for name in statement.names):
                    merged = self._append_import_line(merged, statement.text)
        return merged

    def _append_import_line(self, text: str, line: str) -> str:
        outline = SourceOutline(text)
        if outline.imports:
            end = outline.imports[-1].end
            return text[:end] + '\n' + line + text[end:]
        return f"{line}\n\n{text}"

    def _union_metadata_imports(self, merged: str, ai: SourceOutline) -> str:
        entries = ai.metadata_array('imports') or []
        if not entries:
            return merged
        available = SourceOutline(merged).imported_names
        for entry in entries:
            if entry in available:
                merged = ensure_metadata_entry(merged, 'imports', entry)
        return merged
