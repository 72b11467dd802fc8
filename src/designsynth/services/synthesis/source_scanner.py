"""Source Scanner
==============

Lightweight structural outline of TypeScript source files.

Not a parser: a string- and comment-aware brace matcher that recovers the
import block, the decorator metadata object, the first class (name, header,
body) and the class members at body depth zero. All offsets refer to the
original text; scanning happens on a masked copy in which string bodies and
comments are blanked out, so braces inside literals never count.

Editing helpers (``ensure_import``, ``ensure_metadata_entry``,
``add_implements``, ``append_class_members``) return new text and are no-ops
when the file is already in the requested shape.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

IDENTIFIER = r'[A-Za-z_$][\w$]*'

_IMPORT_RE = re.compile(
    r'^[ \t]*import\s+(?:[^;\'"]*?\bfrom\s*([\'"]).*?\1|([\'"]).*?\2)[ \t]*;?',
    re.MULTILINE | re.DOTALL,
)
_IMPORT_CLAUSE_RE = re.compile(r'import\s+(?:type\s+)?(?P<clause>.*?)\s*from\s*[\'"](?P<module>[^\'"]+)[\'"]', re.DOTALL)
_SIDE_EFFECT_IMPORT_RE = re.compile(r'import\s+[\'"](?P<module>[^\'"]+)[\'"]')
_DECORATOR_RE = re.compile(r'@(Component|Injectable|Directive|Pipe|NgModule)\s*\(')
_CLASS_RE = re.compile(
    r'^[ \t]*(?:export\s+)?(?:default\s+)?(?:abstract\s+)?class\s+(' + IDENTIFIER + r')',
    re.MULTILINE,
)
_MODIFIER_WORDS = ('public', 'private', 'protected', 'static', 'readonly', 'override',
                   'declare', 'abstract', 'async', 'get', 'set')
_MEMBER_RE = re.compile(
    r'^(?P<lead>\s*(?:@[\w$]+\s*(?:\([^()]*\))?\s*)*)'
    r'(?P<modifiers>(?:(?:' + '|'.join(_MODIFIER_WORDS) + r')\s+)*)'
    r'(?P<name>' + IDENTIFIER + r')(?P<marker>[?!])?\s*(?P<rest>.*)$',
    re.DOTALL,
)
_STATEMENT_KEYWORDS = frozenset({'if', 'for', 'while', 'switch', 'return', 'catch', 'try',
                                 'else', 'do', 'throw', 'new', 'this', 'super', 'const', 'let', 'var'})


def mask_source(text: str) -> str:
    """Blank string bodies and comments with spaces; offsets and newlines are kept.

    Quote characters stay in place so literal boundaries remain visible.
    """
    out = list(text)
    n = len(text)
    i = 0
    while i < n:
        ch = text[i]
        nxt = text[i + 1] if i + 1 < n else ''
        if ch == '/' and nxt == '/':
            end = text.find('\n', i)
            end = n if end == -1 else end
            _blank(out, text, i, end)
            i = end
        elif ch == '/' and nxt == '*':
            end = text.find('*/', i + 2)
            end = n if end == -1 else end + 2
            _blank(out, text, i, end)
            i = end
        elif ch in ('"', "'", '`'):
            close = _string_close(text, i)
            _blank(out, text, i + 1, close)
            i = close + 1
        else:
            i += 1
    return ''.join(out)


def _blank(out: List[str], text: str, start: int, end: int) -> None:
    for k in range(start, min(end, len(text))):
        if text[k] != '\n':
            out[k] = ' '


def _string_close(text: str, start: int) -> int:
    """Index of the closing quote (or where an unterminated literal stops)."""
    quote = text[start]
    i = start + 1
    while i < len(text):
        ch = text[i]
        if ch == '\\':
            i += 2
            continue
        if ch == quote:
            return i
        if ch == '\n' and quote != '`':
            return i
        i += 1
    return len(text)


def find_matching(masked: str, open_index: int) -> Optional[int]:
    """Index of the bracket closing the one at ``open_index``, or None."""
    pairs = {'{': '}', '(': ')', '[': ']'}
    opener = masked[open_index]
    closer = pairs.get(opener)
    if closer is None:
        return None
    depth = 0
    for i in range(open_index, len(masked)):
        ch = masked[i]
        if ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return i
    return None


def split_top_level(text: str, separator: str = ',') -> List[str]:
    """Split on separators outside any bracket pair; empty parts dropped."""
    parts, depth, start = [], 0, 0
    masked = mask_source(text or '')
    for i, ch in enumerate(masked):
        if ch in '{([':
            depth += 1
        elif ch in '})]':
            depth -= 1
        elif ch == separator and depth == 0:
            parts.append(text[start:i])
            start = i + 1
    parts.append(text[start:])
    return [p.strip() for p in parts if p.strip()]


@dataclass(frozen=True)
class ImportStatement:
    text: str
    start: int
    end: int
    module: str
    names: Tuple[str, ...]


@dataclass(frozen=True)
class DecoratorBlock:
    """Decorator call; ``metadata_start``/``metadata_end`` delimit ``{...}`` inclusively."""
    name: str
    start: int
    metadata_start: int
    metadata_end: int


@dataclass(frozen=True)
class ClassBlock:
    """First class in the file; ``brace``/``end`` are the body's brace offsets."""
    name: str
    start: int
    brace: int
    end: int
    implements: Tuple[str, ...]


@dataclass(frozen=True)
class ClassMember:
    name: str
    kind: str  # 'method', 'field' or 'property'
    modifiers: Tuple[str, ...]
    marker: str
    type_annotation: Optional[str]
    initialized: bool
    line_start: int
    name_end: int
    type_end: int


class SourceOutline:
    """Structural outline of one TypeScript file."""

    def __init__(self, text: str):
        self.text = text
        self.masked = mask_source(text)
        self.imports = self._scan_imports()
        self.decorator = self._scan_decorator()
        self.cls = self._scan_class()

    # ------------------------------------------------------------------ scans

    def _scan_imports(self) -> List[ImportStatement]:
        statements = []
        for match in _IMPORT_RE.finditer(self.masked):
            start, end = match.start(), match.end()
            statement = self.text[start:end].strip()
            clause = _IMPORT_CLAUSE_RE.match(statement)
            if clause:
                module = clause.group('module')
                names = _import_names(clause.group('clause'))
            else:
                side_effect = _SIDE_EFFECT_IMPORT_RE.match(statement)
                module = side_effect.group('module') if side_effect else ''
                names = ()
            statements.append(ImportStatement(statement, start, end, module, names))
        return statements

    def _scan_decorator(self) -> Optional[DecoratorBlock]:
        match = _DECORATOR_RE.search(self.masked)
        if not match:
            return None
        paren = match.end() - 1
        paren_end = find_matching(self.masked, paren)
        brace = self.masked.find('{', paren)
        if brace == -1 or (paren_end is not None and brace > paren_end):
            return None
        brace_end = find_matching(self.masked, brace)
        if brace_end is None:
            return None
        return DecoratorBlock(match.group(1), match.start(), brace, brace_end)

    def _scan_class(self) -> Optional[ClassBlock]:
        search_from = self.decorator.metadata_end if self.decorator else 0
        match = _CLASS_RE.search(self.masked, search_from) or _CLASS_RE.search(self.masked)
        if not match:
            return None
        brace = self.masked.find('{', match.end())
        if brace == -1:
            return None
        end = find_matching(self.masked, brace)
        if end is None:
            # Unbalanced tail: fall back to the last closing brace in the file
            end = self.masked.rfind('}')
            if end <= brace:
                return None
        header = self.masked[match.end():brace]
        implements: Tuple[str, ...] = ()
        impl = re.search(r'\bimplements\b(.*)$', header, re.DOTALL)
        if impl:
            implements = tuple(
                re.sub(r'<.*', '', part).strip() for part in impl.group(1).split(',') if part.strip()
            )
        start = match.start() + len(match.group(0)) - len(match.group(0).lstrip())
        return ClassBlock(match.group(1), start, brace, end, implements)

    # ------------------------------------------------------------ properties

    @property
    def imported_names(self) -> set:
        return {name for stmt in self.imports for name in stmt.names}

    @property
    def import_block(self) -> str:
        return '\n'.join(stmt.text for stmt in self.imports)

    @property
    def metadata(self) -> str:
        if not self.decorator:
            return ''
        return self.text[self.decorator.metadata_start:self.decorator.metadata_end + 1]

    @property
    def decorator_call(self) -> str:
        """Full decorator expression ``@Component({...})``."""
        if not self.decorator:
            return ''
        close = self.masked.find(')', self.decorator.metadata_end)
        end = close + 1 if close != -1 else self.decorator.metadata_end + 1
        return self.text[self.decorator.start:end]

    @property
    def body(self) -> str:
        """Class body between its braces, exclusive."""
        if not self.cls:
            return ''
        return self.text[self.cls.brace + 1:self.cls.end]

    def metadata_array(self, key: str) -> Optional[List[str]]:
        """Entries of ``key: [...]`` in the decorator metadata, or None when absent."""
        span = self._metadata_array_span(key)
        if span is None:
            return None
        return split_top_level(self.text[span[0] + 1:span[1]])

    def _metadata_array_span(self, key: str) -> Optional[Tuple[int, int]]:
        if not self.decorator:
            return None
        region = self.masked[self.decorator.metadata_start:self.decorator.metadata_end]
        match = re.search(r'\b' + re.escape(key) + r'\s*:\s*\[', region)
        if not match:
            return None
        open_index = self.decorator.metadata_start + match.end() - 1
        close_index = find_matching(self.masked, open_index)
        if close_index is None:
            return None
        return open_index, close_index

    def members(self) -> List[ClassMember]:
        """Class members declared at body depth zero, one per line."""
        if not self.cls:
            return []
        result = []
        offset = self.cls.brace + 1
        depth = 0
        for line in self.masked[offset:self.cls.end].splitlines(keepends=True):
            if depth == 0:
                member = self._match_member(line, offset)
                if member:
                    result.append(member)
            for ch in line:
                if ch in '{([':
                    depth += 1
                elif ch in '})]':
                    depth = max(depth - 1, 0)
            offset += len(line)
        return result

    def member_names(self) -> List[str]:
        return [m.name for m in self.members()]

    def declares(self, name: str) -> bool:
        """True when the file itself declares a type named ``name``."""
        pattern = rf'\b(?:interface|class|type|enum)\s+{re.escape(name)}\b'
        return re.search(pattern, self.masked) is not None

    def _match_member(self, masked_line: str, offset: int) -> Optional[ClassMember]:
        if not masked_line.strip():
            return None
        match = _MEMBER_RE.match(masked_line.rstrip('\n'))
        if not match or match.group('name') in _STATEMENT_KEYWORDS:
            return None
        name = match.group('name')
        modifiers = tuple(match.group('modifiers').split())
        marker = match.group('marker') or ''
        rest = match.group('rest')
        rest_offset = offset + match.start('rest')
        name_end = offset + match.end('marker') if marker else offset + match.end('name')

        if rest.startswith('(') or rest.startswith('<'):
            return ClassMember(name, 'method', modifiers, marker, None, True, offset, name_end, name_end)
        if rest.startswith('='):
            return ClassMember(name, 'property', modifiers, marker, None, True, offset, name_end, name_end)
        if rest.startswith(':'):
            type_stop, initialized = _type_annotation_end(rest, 1)
            type_text = self.text[rest_offset + 1:rest_offset + type_stop].strip()
            raw_type = self.text[rest_offset + 1:rest_offset + type_stop]
            type_end = rest_offset + 1 + len(raw_type.rstrip())
            if not type_text:
                return None
            return ClassMember(name, 'field', modifiers, marker, type_text, initialized,
                               offset, name_end, type_end)
        return None


def _import_names(clause: str) -> Tuple[str, ...]:
    names = []
    clause = clause.strip()
    brace = clause.find('{')
    default_part = clause[:brace] if brace != -1 else clause
    for part in default_part.split(','):
        part = part.strip()
        if part.startswith('* as '):
            names.append(part[5:].strip())
        elif re.fullmatch(IDENTIFIER, part):
            names.append(part)
    if brace != -1:
        inner = clause[brace + 1:clause.rfind('}')]
        for part in inner.split(','):
            part = re.sub(r'^type\s+', '', part.strip())
            if part:
                names.append(part.split(' as ')[0].strip())
    return tuple(names)


def _type_annotation_end(rest: str, start: int) -> Tuple[int, bool]:
    """Offset in ``rest`` where a member type annotation stops, and whether an initializer follows."""
    depth = 0
    i = start
    while i < len(rest):
        ch = rest[i]
        if ch in '{([<':
            depth += 1
        elif ch in '})]':
            depth -= 1
        elif ch == '>' and depth > 0:
            depth -= 1
        elif depth == 0 and ch == ';':
            return i, False
        elif depth == 0 and ch == '=':
            if i + 1 < len(rest) and rest[i + 1] == '>':
                i += 2
                continue
            return i, True
        i += 1
    return len(rest), False


# ------------------------------------------------------------------ editing


def ensure_import(text: str, name: str, module: str) -> str:
    """Import ``name`` from ``module`` unless the name is already imported."""
    outline = SourceOutline(text)
    if name in outline.imported_names:
        return text
    for stmt in outline.imports:
        if stmt.module == module and '{' in stmt.text and not stmt.text.startswith('import type'):
            open_brace = stmt.text.find('{')
            close_brace = stmt.text.rfind('}')
            inner = stmt.text[open_brace + 1:close_brace].rstrip()
            if inner.strip() and not inner.strip().endswith(','):
                inner += ','
            updated = f"{stmt.text[:open_brace + 1]}{inner} {name} {stmt.text[close_brace:]}"
            if not inner.strip():
                updated = f"{stmt.text[:open_brace + 1]} {name} {stmt.text[close_brace:]}"
            return text[:stmt.start] + _leading_ws(text, stmt.start) + updated + text[stmt.end:]
    line = f"import {{ {name} }} from '{module}';"
    if outline.imports:
        last = outline.imports[-1]
        return text[:last.end] + '\n' + line + text[last.end:]
    return f"{line}\n{text}" if text.startswith('\n') else f"{line}\n\n{text}"


def _leading_ws(text: str, start: int) -> str:
    """Whitespace that the import regex consumed before the statement keyword."""
    end = start
    while end < len(text) and text[end] in ' \t':
        end += 1
    return text[start:end]


def ensure_metadata_entry(text: str, key: str, value: str) -> str:
    """Add ``value`` to the decorator metadata array ``key``, creating it if needed."""
    outline = SourceOutline(text)
    if not outline.decorator:
        return text
    entries = outline.metadata_array(key)
    if entries is not None:
        if value in entries:
            return text
        open_index, close_index = outline._metadata_array_span(key)
        inner = text[open_index + 1:close_index]
        if not inner.strip():
            return text[:open_index + 1] + value + text[close_index:]
        stripped = inner.rstrip()
        trailing = inner[len(stripped):]
        if stripped.endswith(','):
            stripped = stripped[:-1]
        return text[:open_index + 1] + f"{stripped}, {value}" + trailing + text[close_index:]
    brace = outline.decorator.metadata_start
    return text[:brace + 1] + f"\n  {key}: [{value}]," + text[brace + 1:]


def add_implements(text: str, interface: str) -> str:
    """Add ``interface`` to the class ``implements`` clause."""
    outline = SourceOutline(text)
    if not outline.cls or interface in outline.cls.implements:
        return text
    insert_at = outline.cls.brace
    while insert_at > outline.cls.start and text[insert_at - 1].isspace():
        insert_at -= 1
    clause = f", {interface}" if outline.cls.implements else f" implements {interface}"
    return text[:insert_at] + clause + text[insert_at:]


def append_class_members(text: str, snippet: str) -> str:
    """Insert ``snippet`` just before the class's closing brace."""
    outline = SourceOutline(text)
    if not outline.cls or not snippet.strip():
        return text
    head = text[:outline.cls.end].rstrip()
    return f"{head}\n\n{snippet.rstrip()}\n{text[outline.cls.end:]}"
