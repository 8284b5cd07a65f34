"""
publishing/ — Las etapas del pipeline de publicación.

Módulos:
- source.py    → Etapa 1: clonar/abrir el código fuente en la revisión del trigger
- builder.py   → Etapa 2: invocar el renderer externo y validar el artefacto
- git_ops.py   → Etapas 3-6: branch de publicación, stage, commit y push
- publisher.py → Orquestador que encadena las etapas
"""
