"""designsynth
============

Turns a visual design document plus AI-authored source fragments into a
complete, buildable client project delivered as an in-memory archive.

Entry points:
- ``designsynth.services.synthesis.SynthesisService``: async pipeline
- ``designsynth.services.synthesis.synthesize_project``: convenience wrapper
- ``designsynth.cli.synthesize``: command line front-end
"""

__version__ = "0.1.0"

__all__ = ['__version__']
