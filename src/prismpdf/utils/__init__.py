"""
PrismPDF - Utils Package

Utility modules for the application: logging, configuration,
exceptions, i18n and formatting helpers. Import from the submodules
directly; ``prismpdf.config`` depends on ``utils.i18n``, so this package
must stay free of eager imports.
"""
