"""
Generators — turn an InstallerConfig into artifact source text.

Each generator module exposes a ``generate_*()`` function returning
``GeneratedFile`` instances.  ``producer.produce()`` is the single
entry point that validates the config and picks a strategy.
"""
