# Sphinx configuration for the cointrestrict documentation.

import os
import sys

# The package lives one directory above the documentation root.
sys.path.insert(0, os.path.abspath('..'))

from cointrestrict.version import __version__ as version
from cointrestrict.version import __title__

# -- Project information -----------------------------------------------------

project = __title__
copyright = "2026, cointrestrict developers"
author = "cointrestrict developers"
release = version

# -- General configuration ---------------------------------------------------

extensions = [
    'sphinx.ext.autodoc',
    'sphinx.ext.autosummary',
    'sphinx.ext.napoleon',          # Google style docstrings
    'sphinx.ext.mathjax',
    'sphinx.ext.intersphinx',
]

templates_path = ['_templates']
exclude_patterns = ['_build']
autosummary_generate = True

autodoc_typehints = 'description'
autodoc_member_order = 'bysource'
autodoc_default_options = {
    'members': True,
    'exclude-members': '__weakref__',
}

napoleon_google_docstring = True
napoleon_numpy_docstring = False

# Notation used in the docstrings of the restriction and likelihood modules
mathjax3_config = {
    'tex': {
        'macros': {
            'vec': r'\operatorname{vec}',
            'rank': r'\operatorname{rank}',
        },
    },
}

intersphinx_mapping = {
    'python': ('https://docs.python.org/3', None),
    'numpy': ('https://numpy.org/doc/stable/', None),
    'scipy': ('https://docs.scipy.org/doc/scipy/', None),
    'pandas': ('https://pandas.pydata.org/pandas-docs/stable/', None),
    'statsmodels': ('https://www.statsmodels.org/stable/', None),
}

# -- Options for HTML output -------------------------------------------------

html_theme = 'sphinx_rtd_theme'


def process_docstrings(app, what, name, obj, options, lines):
    """Flag the jitted likelihood kernels in their rendered docstrings."""
    if what == 'function' and '_numba_core' in getattr(obj, '__module__', ''):
        lines.extend(['', '.. note::', '   Compiled with Numba in nopython mode.', ''])


def setup(app):
    app.connect('autodoc-process-docstring', process_docstrings)
