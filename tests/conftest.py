import sys
from pathlib import Path

# Ensure the application package under src/ is importable when running tests
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / 'src'
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

import pytest

from designsynth.config.config_manager import ENV_OVERRIDES, SynthesisSettings
from designsynth.paths import PROJECT_TEMPLATES_DIR


@pytest.fixture
def clean_env(monkeypatch):
    """Remove configuration overrides that may leak in from the shell."""
    for var in ENV_OVERRIDES:
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


@pytest.fixture
def settings(tmp_path):
    """Offline settings: no scaffold tool, no build check, staging under tmp."""
    return SynthesisSettings(
        api_key='test-key',
        model='test/model',
        template_root=PROJECT_TEMPLATES_DIR,
        staging_root=tmp_path / 'staging',
        max_workers=2,
        scaffold_enabled=False,
        verify_enabled=False,
    )


@pytest.fixture
def sample_design():
    """One page, one frame: a heading text node and a button without text."""
    return {
        'assets': [],
        'styles': [
            {'selectors': ['#hero'], 'style': {'padding': '24px'}},
        ],
        'pages': [
            {
                'name': 'Home',
                'frames': [
                    {
                        'component': {
                            'type': 'wrapper',
                            'components': [
                                {'type': 'text', 'components': [{'type': 'textnode', 'content': 'Welcome'}]},
                                {'type': 'button', 'attributes': {'id': 'ixk3'}},
                            ],
                        }
                    }
                ],
            }
        ],
    }


@pytest.fixture
def shop_design():
    """One page with three labelled buttons."""
    def button(text):
        return {'type': 'button', 'components': [{'type': 'textnode', 'content': text}]}

    return {
        'assets': [],
        'styles': [],
        'pages': [
            {
                'name': 'Home',
                'frames': [
                    {
                        'component': {
                            'type': 'wrapper',
                            'components': [button('Buy now'), button('Add to cart'), button('Checkout')],
                        }
                    }
                ],
            }
        ],
    }
