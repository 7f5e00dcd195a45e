"""Sphinx configuration for the scupgrade API reference and session scripts."""

import sys
from datetime import datetime
from pathlib import Path

HERE = Path(__file__).parent
sys.path.insert(0, str(HERE.parent / "src"))

import scupgrade

project = "scupgrade"
author = "Coder Upgrade instructors"
copyright = f"{datetime.now():%Y}, {author}"
version = scupgrade.__version__
release = version

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.autosummary",
    "sphinx.ext.intersphinx",
    "sphinx.ext.napoleon",
    "myst_parser",
]

source_suffix = {".md": "markdown"}
master_doc = "index"

# Session scripts download data; api.md pulls them in with literalinclude
exclude_patterns = ["_build", "workflows/**"]

html_theme = "sphinx_book_theme"
html_title = "scupgrade"

napoleon_google_docstring = False
napoleon_numpy_docstring = True
napoleon_use_rtype = False

autosummary_generate = True
autodoc_typehints = "signature"
autodoc_default_options = {"members": True, "member-order": "bysource"}
# Optional extras; the API pages import without them
autodoc_mock_imports = ["liana", "harmonypy"]

intersphinx_mapping = {
    "python": ("https://docs.python.org/3", None),
    "anndata": ("https://anndata.readthedocs.io/en/stable/", None),
    "scanpy": ("https://scanpy.readthedocs.io/en/stable/", None),
    "liana": ("https://liana-py.readthedocs.io/en/latest/", None),
    "pandas": ("https://pandas.pydata.org/docs/", None),
}

myst_enable_extensions = ["colon_fence"]
