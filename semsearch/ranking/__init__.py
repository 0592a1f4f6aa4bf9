"""Search ranking and result fusion components.

This package contains the score normalizer and the weighted fusion that
combine lexical and semantic signals for hybrid search.

Contents
- ``normalization``: min-max, z-score, and identity rescaling
- ``fusion``: candidate merging and hybrid ranking
"""
