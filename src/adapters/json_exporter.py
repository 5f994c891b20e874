"""Exportación JSON de resultados de la capa IA.

Por qué JSON:
- Interoperabilidad con hojas de cálculo, notebooks y otros pipelines.
- Permite guardar un análisis sin depender del render de la terminal.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel


def export_result_json(*, result: BaseModel, output_path: Path) -> Path:
    """Exporta un resultado (p.ej. `AiResponse`) a JSON UTF-8 con formato estable.

    Las claves usan los alias camelCase del dominio (`fullText`, `peRatio`...).
    """

    output_path.parent.mkdir(parents=True, exist_ok=True)
    payload = result.model_dump(mode="json", by_alias=True)
    output_path.write_text(
        json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True) + "\n",
        encoding="utf-8",
    )
    return output_path
