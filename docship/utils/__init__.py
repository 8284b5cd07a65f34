"""
utils/ — Utilidades compartidas.

Módulos:
- logger.py     → Logging con Rich + archivo rotativo
- validators.py → Validación de branches, subpaths y redacción de secretos
"""
