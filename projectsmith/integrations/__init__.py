"""Collaborators driven by the provisioning pipeline.

- ``process``: the single process-execution primitive every tool call uses.
- ``git``: local git operations on top of the executor.
- ``github``: GitHub REST client and the version-control host facade.
- ``vercel``: the deployment CLI.
- ``package_managers``: npm / yarn / pnpm / bun commands.
"""
