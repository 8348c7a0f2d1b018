"""Build settings for the PetHunt identity API reference.

Run ``sphinx-build docs docs/_build`` from the repository root after
installing the ``docs`` extra. Database and hashing drivers are mocked so the
reference builds without libpq or the argon2 C extension present.
"""

from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

project = "PetHunt Identity"
author = "PetHunt"
copyright = "PetHunt"
version = release = "0.1.0"

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",
    "sphinx_autodoc_typehints",
]

# Service, repository and hasher docstrings use numpy-style "Raises" sections.
napoleon_google_docstring = False
napoleon_numpy_docstring = True
autodoc_member_order = "bysource"
autodoc_default_options = {"members": True, "show-inheritance": True}
autodoc_mock_imports = ["psycopg", "psycopg_pool", "argon2"]
typehints_fully_qualified = False
always_document_param_types = False

exclude_patterns = ["_build"]
html_theme = "alabaster"
html_title = "PetHunt Identity API"
