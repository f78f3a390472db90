"""
Pipeline d'ingestion des pieces de dossier.

Structure:
    components/ - Briques d'extraction (validation, lecture locale, OCR, multimodal, enrichissement)
    pipelines/  - Routage par type MIME et orchestration d'un document
    state/      - Machine a etats du document et ecriture des resultats
    queue/      - Files RQ, jobs et pools de workers
"""
