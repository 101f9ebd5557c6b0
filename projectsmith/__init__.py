"""projectsmith: provision new software projects from templates.

Materializes a template into a directory tree, then optionally creates a
GitHub repository, writes env files, deploys with the Vercel CLI and installs
dependencies.
"""

__version__ = "0.1.0"
