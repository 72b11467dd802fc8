"""Project Packager
================

Assembles the template project and the generated files into one in-memory
zip archive.

Layout rules:
- every entry lives under the project root folder, which comes first
- forward-slash paths; directories precede the files they contain
- fixed timestamps and DEFLATE level 6, so equal inputs give equal bytes
- the archive comment names the project and its target

The template's unit root (``src/app`` or ``lib``) is not copied: generated
output replaces it wholesale. Nothing is written to the caller until
``serialize`` succeeds.
"""

import asyncio
import io
import json
import logging
import os
import re
import zipfile
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from designsynth.constants import (
    EXCLUDED_TEMPLATE_DIRS,
    PROJECT_MANIFESTS,
    UNIT_ROOTS,
    TargetFramework,
)
from designsynth.services.service_base import PackagingFailure, TemplateNotFoundError

from .artifacts import GeneratedFile, collapse_segments

logger = logging.getLogger(__name__)

FIXED_TIMESTAMP = (1980, 1, 1, 0, 0, 0)
COMPRESS_LEVEL = 6
FILE_MODE = 0o644 << 16
DIR_MODE = (0o40755 << 16) | 0x10


def _clean(path: str) -> str:
    return collapse_segments(path)


class ProjectArchive:
    """Ordered directory and file entries, serialized once."""

    def __init__(self, root_folder: str, comment: str = ''):
        self.root_folder = _clean(root_folder) or 'project'
        self.comment = comment
        self._directories: Dict[str, None] = {}
        self._files: Dict[str, bytes] = {}

    def __len__(self) -> int:
        return len(self._files)

    def __contains__(self, path: str) -> bool:
        return _clean(path) in self._files

    @property
    def file_paths(self) -> List[str]:
        return list(self._files)

    @property
    def directories(self) -> List[str]:
        return list(self._directories)

    def add_directory(self, path: str) -> None:
        path = _clean(path)
        if not path:
            return
        parts = path.split('/')
        for depth in range(1, len(parts) + 1):
            self._directories.setdefault('/'.join(parts[:depth]), None)

    def add_file(self, path: str, content: Union[str, bytes]) -> None:
        """Add or replace a file; parent directories are created on demand."""
        path = _clean(path)
        if not path:
            raise PackagingFailure("Archive entry with empty path")
        parent = path.rpartition('/')[0]
        if parent:
            self.add_directory(parent)
        self._files[path] = content.encode('utf-8') if isinstance(content, str) else content

    def replace_file(self, path: str, content: Union[str, bytes]) -> None:
        """Overwrite an existing file in place (keeps its position)."""
        path = _clean(path)
        if path not in self._files:
            raise KeyError(path)
        self._files[path] = content.encode('utf-8') if isinstance(content, str) else content

    def read_text(self, path: str) -> str:
        return self._files[_clean(path)].decode('utf-8', errors='replace')

    def entry_names(self) -> List[str]:
        """Archive member names in write order."""
        names = [f"{self.root_folder}/"]
        emitted = set()

        def emit_directory(directory: str) -> None:
            parts = directory.split('/')
            for depth in range(1, len(parts) + 1):
                ancestor = '/'.join(parts[:depth])
                if ancestor not in emitted:
                    emitted.add(ancestor)
                    names.append(f"{self.root_folder}/{ancestor}/")

        for path in self._files:
            parent = path.rpartition('/')[0]
            if parent:
                emit_directory(parent)
            names.append(f"{self.root_folder}/{path}")
        for directory in self._directories:
            emit_directory(directory)
        return names

    def serialize(self) -> bytes:
        """Write the zip archive into memory and return its bytes.

        Raises:
            PackagingFailure: When the archive cannot be written
        """
        buffer = io.BytesIO()
        prefix = f"{self.root_folder}/"
        try:
            with zipfile.ZipFile(buffer, mode='w', compression=zipfile.ZIP_DEFLATED,
                                 compresslevel=COMPRESS_LEVEL) as zf:
                for name in self.entry_names():
                    info = zipfile.ZipInfo(name, date_time=FIXED_TIMESTAMP)
                    if name.endswith('/'):
                        info.external_attr = DIR_MODE
                        zf.writestr(info, b'')
                    else:
                        info.external_attr = FILE_MODE
                        info.compress_type = zipfile.ZIP_DEFLATED
                        zf.writestr(info, self._files[name[len(prefix):]], compresslevel=COMPRESS_LEVEL)
                zf.comment = self.comment.encode('utf-8')[:65535]
        except (OSError, ValueError, zipfile.LargeZipFile) as e:
            raise PackagingFailure(f"Failed to serialize archive: {e}") from e
        data = buffer.getvalue()
        logger.info(f"Archive serialized: {len(self._files)} files, {len(data)} bytes")
        return data

    def write_to(self, directory: Path) -> None:
        """Materialize the files under ``directory`` (without the root folder).

        Raises:
            PackagingFailure: When an entry would land outside ``directory``
        """
        base = Path(directory).resolve()
        for path, content in self._files.items():
            target = (base / path).resolve()
            if not target.is_relative_to(base):
                raise PackagingFailure(f"Archive entry escapes the project directory: {path}")
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)


class ProjectAssembler:
    """Walks the template project and builds the archive.

    Raises:
        TemplateNotFoundError: At construction, when the template directory or
            its manifest (``package.json`` / ``pubspec.yaml``) is missing
    """

    def __init__(self, template_dir: Path, target: TargetFramework,
                 excluded_dirs: Iterable[str] = EXCLUDED_TEMPLATE_DIRS):
        self.template_dir = Path(template_dir)
        self.target = target
        self.excluded_dirs = frozenset(excluded_dirs)
        self.unit_root = UNIT_ROOTS[target]
        self.manifest = PROJECT_MANIFESTS[target]
        if not self.template_dir.is_dir():
            raise TemplateNotFoundError(f"Template project not found: {self.template_dir}")
        if not (self.template_dir / self.manifest).is_file():
            raise TemplateNotFoundError(f"Template project has no {self.manifest}: {self.template_dir}")

    def collect_template(self) -> Tuple[List[str], List[Tuple[str, bytes]]]:
        """Directories and files of the template, minus excluded and unit-root trees."""
        directories: List[str] = []
        files: List[Tuple[str, bytes]] = []
        for current, dirnames, filenames in os.walk(self.template_dir):
            rel_dir = Path(current).relative_to(self.template_dir).as_posix()
            rel_dir = '' if rel_dir == '.' else rel_dir
            kept = []
            for dirname in sorted(dirnames):
                rel = f"{rel_dir}/{dirname}" if rel_dir else dirname
                if dirname in self.excluded_dirs or rel == self.unit_root:
                    logger.debug(f"Skipping template directory {rel}")
                    continue
                kept.append(dirname)
                directories.append(rel)
            dirnames[:] = kept
            for filename in sorted(filenames):
                path = Path(current) / filename
                if not path.is_file():
                    continue
                rel = f"{rel_dir}/{filename}" if rel_dir else filename
                files.append((rel, path.read_bytes()))
        return directories, files

    def rename_manifest(self, content: bytes, project_name: str) -> bytes:
        """Set the project name in ``pubspec.yaml`` / ``package.json``."""
        text = content.decode('utf-8')
        if self.manifest == 'pubspec.yaml':
            text = re.sub(r'^name:.*$', f"name: {project_name}", text, count=1, flags=re.MULTILINE)
            return text.encode('utf-8')
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            logger.warning("package.json is not valid JSON; renaming by pattern")
            text = re.sub(r'"name"\s*:\s*"[^"]*"', f'"name": "{project_name}"', text, count=1)
            return text.encode('utf-8')
        data['name'] = project_name
        return (json.dumps(data, indent=2) + '\n').encode('utf-8')

    def archive_path(self, generated: GeneratedFile) -> str:
        """``lib/widgets/foo`` + ``bar.dart`` -> ``lib/widgets/foo/bar.dart`` (for Flutter)."""
        return f"{self.unit_root}/{generated.relative_path}"

    async def assemble(
        self,
        project_name: str,
        generated: Iterable[GeneratedFile],
        comment: Optional[str] = None,
    ) -> ProjectArchive:
        """Build the archive from the template tree plus generated files.

        Raises:
            PackagingFailure: When the template tree cannot be read
        """
        loop = asyncio.get_running_loop()
        try:
            directories, files = await loop.run_in_executor(None, self.collect_template)
        except (OSError, ValueError) as e:
            raise PackagingFailure(f"Failed to read template project: {e}") from e

        archive = ProjectArchive(
            project_name,
            comment if comment is not None else f"{project_name} ({self.target.value} project)",
        )
        for directory in directories:
            archive.add_directory(directory)
        for rel, content in files:
            if rel == self.manifest:
                try:
                    content = self.rename_manifest(content, project_name)
                except UnicodeDecodeError as e:
                    raise PackagingFailure(f"Unreadable {self.manifest}: {e}") from e
            archive.add_file(rel, content)

        archive.add_directory(self.unit_root)
        count = 0
        for generated_file in generated:
            archive.add_file(self.archive_path(generated_file), generated_file.filecontent)
            count += 1
        logger.info(f"Assembled {len(files)} template files and {count} generated files")
        return archive
