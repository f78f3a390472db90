"""
Composants du pipeline d'ingestion.

    validators/  - Validation du texte extrait et detection d'encodage
    extractors/  - Lecture locale (texte, tableurs, DOCX)
    ocr/         - Pretraitement d'image, reconnaissance Tesseract, echantillonnage video
    multimodal/  - Appels au modele generatif (transcription, analyse visuelle, documents)
    enrichment/  - Langue, resume, chronologie, traductions, titre
"""
