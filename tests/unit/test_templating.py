"""Tests for template rendering."""

import pytest

from designsynth.services.service_base import TemplateNotFoundError
from designsynth.services.synthesis.templating import build_environment, render_template


@pytest.fixture
def env(tmp_path):
    (tmp_path / 'unit.ts.jinja2').write_text("export class {{ name | pascal }}{{ env }} {}\n")
    return build_environment(tmp_path)


@pytest.mark.unit
class TestRenderTemplate:

    def test_name_and_env_are_context_keys(self, env):
        assert render_template(env, 'unit.ts.jinja2', name='cart-item', env='Service') == (
            "export class CartItemService {}\n"
        )

    def test_missing_template(self, env):
        with pytest.raises(TemplateNotFoundError, match='missing.jinja2'):
            render_template(env, 'missing.jinja2', name='x')
