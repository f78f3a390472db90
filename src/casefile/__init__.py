"""casefile - pipeline d'ingestion et d'extraction de contenu des pieces de dossier."""

__version__ = "0.4.0"
