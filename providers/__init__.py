"""
providers — per-provider profile normalization.

Each identity provider behind the broker maps its raw profile onto the
canonical identity through a subclass of ``BaseNormalizer``; variants are
looked up by provider name in ``NormalizerRegistry``.
"""
