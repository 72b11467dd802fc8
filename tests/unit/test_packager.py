"""Tests for archive assembly and serialization."""

import io
import json
import zipfile

import pytest

from designsynth.constants import TargetFramework
from designsynth.services.service_base import PackagingFailure, TemplateNotFoundError
from designsynth.services.synthesis.artifacts import GeneratedFile
from designsynth.services.synthesis.packager import FIXED_TIMESTAMP, ProjectArchive, ProjectAssembler


@pytest.fixture
def angular_template(tmp_path):
    root = tmp_path / 'angular-template'
    (root / 'src' / 'app').mkdir(parents=True)
    (root / 'node_modules' / 'rxjs').mkdir(parents=True)
    (root / '.git').mkdir()
    (root / 'package.json').write_text(json.dumps({'name': 'template', 'version': '0.0.0'}))
    (root / 'src' / 'main.ts').write_text("bootstrapApplication(AppComponent);\n")
    (root / 'src' / 'app' / 'old.component.ts').write_text('export class OldComponent {}\n')
    (root / 'node_modules' / 'rxjs' / 'index.js').write_text('module.exports = {};\n')
    (root / '.git' / 'HEAD').write_text('ref: refs/heads/main\n')
    return root


@pytest.fixture
def flutter_template(tmp_path):
    root = tmp_path / 'flutter-template'
    (root / 'lib').mkdir(parents=True)
    (root / '.dart_tool').mkdir()
    (root / 'pubspec.yaml').write_text('name: app\ndescription: Template\n')
    (root / 'lib' / 'main.dart').write_text('void main() {}\n')
    return root


def generated():
    return [
        GeneratedFile('components/home-page', 'home-page.component.ts', 'export class HomePageComponent {}\n'),
        GeneratedFile('', 'app.component.ts', 'export class AppComponent {}\n'),
    ]


def open_zip(data):
    return zipfile.ZipFile(io.BytesIO(data))


@pytest.mark.unit
@pytest.mark.asyncio
class TestProjectAssembler:
    """Template walk plus generated files."""

    async def test_root_folder_comes_first(self, angular_template):
        archive = await ProjectAssembler(angular_template, TargetFramework.ANGULAR).assemble('shop', generated())
        names = open_zip(archive.serialize()).namelist()
        assert names[0] == 'shop/'
        assert all(name.startswith('shop/') for name in names)

    async def test_directories_precede_their_files(self, angular_template):
        archive = await ProjectAssembler(angular_template, TargetFramework.ANGULAR).assemble('shop', generated())
        names = archive.entry_names()
        for index, name in enumerate(names):
            if name.endswith('/'):
                continue
            parent = name.rpartition('/')[0] + '/'
            assert parent in names[:index]

    async def test_generated_parent_segments_stay_in_unit_root(self, angular_template):
        escaping = GeneratedFile('../../tmp/escaped', 'pwned.txt', 'x')
        archive = await ProjectAssembler(angular_template, TargetFramework.ANGULAR).assemble('shop', [escaping])
        names = open_zip(archive.serialize()).namelist()
        assert 'shop/src/app/tmp/escaped/pwned.txt' in names
        assert all('..' not in name for name in names)

    async def test_excluded_and_unit_root_trees_are_skipped(self, angular_template):
        """The template's own components are replaced by the generated ones."""
        archive = await ProjectAssembler(angular_template, TargetFramework.ANGULAR).assemble('shop', generated())

        assert 'src/app/old.component.ts' not in archive
        assert not any(path.startswith('node_modules') for path in archive.file_paths)
        assert not any(path.startswith('.git') for path in archive.file_paths)
        assert 'src/main.ts' in archive
        assert 'src/app/components/home-page/home-page.component.ts' in archive
        assert 'src/app/app.component.ts' in archive
        assert len(archive) == 4

    async def test_manifest_is_renamed(self, angular_template):
        archive = await ProjectAssembler(angular_template, TargetFramework.ANGULAR).assemble('shop', [])
        manifest = json.loads(archive.read_text('package.json'))
        assert manifest == {'name': 'shop', 'version': '0.0.0'}

    async def test_comment_names_project_and_target(self, angular_template):
        archive = await ProjectAssembler(angular_template, TargetFramework.ANGULAR).assemble('shop', [])
        assert open_zip(archive.serialize()).comment == b'shop (angular project)'

    async def test_serialization_is_deterministic(self, angular_template):
        assembler = ProjectAssembler(angular_template, TargetFramework.ANGULAR)
        first = (await assembler.assemble('shop', generated())).serialize()
        second = (await assembler.assemble('shop', generated())).serialize()
        assert first == second

    async def test_entries_use_fixed_timestamp_and_deflate(self, angular_template):
        archive = await ProjectAssembler(angular_template, TargetFramework.ANGULAR).assemble('shop', generated())
        for info in open_zip(archive.serialize()).infolist():
            assert info.date_time == FIXED_TIMESTAMP
            if not info.is_dir():
                assert info.compress_type == zipfile.ZIP_DEFLATED

    async def test_flutter_project(self, flutter_template):
        files = [GeneratedFile('lib/widgets/foo', 'bar.dart', 'class Bar {}\n')]

        archive = await ProjectAssembler(flutter_template, TargetFramework.FLUTTER).assemble('shop', files)

        assert archive.read_text('pubspec.yaml').startswith('name: shop\n')
        assert 'lib/widgets/foo/bar.dart' in archive
        assert 'lib/main.dart' not in archive
        assert not any(path.startswith('.dart_tool') for path in archive.file_paths)


@pytest.mark.unit
class TestProjectAssemblerErrors:
    def test_missing_template_directory(self, tmp_path):
        with pytest.raises(TemplateNotFoundError):
            ProjectAssembler(tmp_path / 'missing', TargetFramework.ANGULAR)

    def test_missing_manifest(self, tmp_path):
        (tmp_path / 'lib').mkdir()
        with pytest.raises(TemplateNotFoundError, match='pubspec.yaml'):
            ProjectAssembler(tmp_path, TargetFramework.FLUTTER)

    def test_rename_manifest_with_invalid_json(self, angular_template):
        assembler = ProjectAssembler(angular_template, TargetFramework.ANGULAR)
        renamed = assembler.rename_manifest(b'{"name": "template", // comment\n}', 'shop')
        assert b'"name": "shop"' in renamed


@pytest.mark.unit
class TestProjectArchive:
    def test_empty_path_rejected(self):
        with pytest.raises(PackagingFailure):
            ProjectArchive('shop').add_file('///', 'x')

    def test_replace_requires_existing_file(self):
        archive = ProjectArchive('shop')
        with pytest.raises(KeyError):
            archive.replace_file('src/app/missing.ts', 'x')

    def test_replace_keeps_position(self):
        archive = ProjectArchive('shop')
        archive.add_file('a.txt', 'a')
        archive.add_file('b.txt', 'b')
        archive.replace_file('a.txt', 'changed')
        assert archive.file_paths == ['a.txt', 'b.txt']
        assert archive.read_text('a.txt') == 'changed'

    def test_paths_are_normalized(self):
        archive = ProjectArchive('shop')
        archive.add_file('src\\app//x.ts', 'x')
        assert 'src/app/x.ts' in archive
        assert archive.directories == ['src', 'src/app']

    def test_empty_directories_are_kept(self):
        archive = ProjectArchive('shop')
        archive.add_directory('assets/images')
        assert archive.entry_names() == ['shop/', 'shop/assets/', 'shop/assets/images/']

    def test_write_to(self, tmp_path):
        archive = ProjectArchive('shop')
        archive.add_file('src/app/x.ts', 'export const x = 1;\n')
        archive.write_to(tmp_path)
        assert (tmp_path / 'src' / 'app' / 'x.ts').read_text() == 'export const x = 1;\n'

    def test_parent_segments_cannot_leave_the_root(self):
        archive = ProjectArchive('shop')
        archive.add_file('src/app/../../../../tmp/escaped/pwned.txt', 'x')
        assert archive.file_paths == ['tmp/escaped/pwned.txt']
        assert all('..' not in name for name in archive.entry_names())

    def test_parent_segments_in_root_folder(self):
        assert ProjectArchive('../../shop').root_folder == 'shop'

    def test_write_to_stays_inside_directory(self, tmp_path):
        target = tmp_path / 'project'
        archive = ProjectArchive('shop')
        archive.add_file('../escaped.txt', 'x')
        archive.write_to(target)
        assert (target / 'escaped.txt').read_text() == 'x'
        assert not (tmp_path / 'escaped.txt').exists()

    def test_write_to_refuses_symlinked_escape(self, tmp_path):
        outside = tmp_path / 'outside'
        outside.mkdir()
        target = tmp_path / 'project'
        target.mkdir()
        (target / 'link').symlink_to(outside, target_is_directory=True)
        archive = ProjectArchive('shop')
        archive.add_file('link/x.txt', 'x')

        with pytest.raises(PackagingFailure, match='escapes'):
            archive.write_to(target)
        assert not (outside / 'x.txt').exists()
