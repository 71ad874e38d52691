"""
Top-level package for the image → entry reconciliation utility.

This package bundles the components needed to pair a folder of product
images with the entries of a Uniform project and write asset references
back into those entries.  Modules are split into subpackages:

* :mod:`src.extractors` – local image folder, entry catalog and asset mirror
* :mod:`src.matchers` – keyword and model-assisted image matching
* :mod:`src.migrators` – Uniform API access, endpoint discovery and the
  upload/assign executor
* :mod:`src.utils` – error taxonomy, mapping persistence and reporting

Each layer has no direct knowledge of configuration or execution strategy;
orchestration is handled in :mod:`src.reconciliation_tool`.
"""
