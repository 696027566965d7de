"""
Build the JSONL knowledge source from curated CSV/XLSX tables.

Input assumptions:
- Each table has the columns ``id``, ``patterns`` and ``answer``.
- ``patterns`` holds one or more trigger phrases separated by ``|``.
- Rows with an empty id, pattern list or answer are skipped with a warning.

Each entry's embedding is the L2-normalized mean of its pattern embeddings,
computed with the embedder configured in the pipeline config, so the output
always matches the dimension the server will check at load time.

Output JSONL schema (one object per line):
{
  "id": str,
  "patterns": [str, ...],
  "answer": str,
  "embedding": [float, ...]
}

Usage:
  python scripts/build_knowledge.py --input data/knowledge.example.csv --output data/knowledge.jsonl
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Dict, List

import numpy as np
import pandas as pd

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from persona.config import configure_logging, load_config  # noqa: E402
from persona.embedding import EmbeddingProvider, build_embedder, embed_pattern  # noqa: E402


def _to_str(x: object) -> str:
    if x is None:
        return ""
    if isinstance(x, float) and pd.isna(x):
        return ""
    return str(x).strip()


def _read_table(path: Path) -> pd.DataFrame:
    if path.suffix.lower() == ".csv":
        return pd.read_csv(path, dtype=str)
    if path.suffix.lower() in {".xlsx", ".xls"}:
        return pd.read_excel(path, dtype=str)
    raise ValueError(f"Unsupported table format: {path.suffix}")


def _entry_embedding(embedder: EmbeddingProvider, patterns: List[str], strip_punctuation: bool) -> List[float]:
    vectors = np.asarray([embed_pattern(embedder, p, strip_punctuation) for p in patterns], dtype=np.float64)
    mean = vectors.mean(axis=0)
    norm = np.linalg.norm(mean)
    if norm > 0:
        mean = mean / norm
    return [round(float(v), 6) for v in mean]


def build_records(
    df: pd.DataFrame,
    embedder: EmbeddingProvider,
    strip_punctuation: bool,
    source_name: str,
) -> List[Dict]:
    records: List[Dict] = []
    for idx, row in df.iterrows():
        entry_id = _to_str(row.get("id")) or f"{source_name}-{idx}"
        patterns = [p.strip() for p in _to_str(row.get("patterns")).split("|") if p.strip()]
        answer = _to_str(row.get("answer"))
        if not patterns or not answer:
            print(f"Skipping row {idx} of {source_name}: missing patterns or answer", file=sys.stderr)
            continue
        records.append(
            {
                "id": entry_id,
                "patterns": patterns,
                "answer": answer,
                "embedding": _entry_embedding(embedder, patterns, strip_punctuation),
            }
        )
    return records


def main() -> None:
    parser = argparse.ArgumentParser(description="Convert curated answer tables to a JSONL knowledge source.")
    parser.add_argument("--input", nargs="+", default=["data/knowledge.example.csv"], help="CSV/XLSX files")
    parser.add_argument("--output", default="data/knowledge.jsonl", help="Output JSONL file path")
    parser.add_argument("--config", default="config/pipeline.json", help="Pipeline config (embedding section)")
    args = parser.parse_args()

    config = load_config(args.config)
    configure_logging(config)
    embedder = build_embedder(config)
    strip_punctuation = config.get("normalize", {}).get("strip_punctuation", True)

    all_records: List[Dict] = []
    seen = set()
    for name in args.input:
        path = Path(name)
        for record in build_records(_read_table(path), embedder, strip_punctuation, path.stem):
            if record["id"] in seen:
                print(f"Duplicate id {record['id']!r} in {path}; keeping the first", file=sys.stderr)
                continue
            seen.add(record["id"])
            all_records.append(record)

    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8") as w:
        for obj in all_records:
            json.dump(obj, w, ensure_ascii=False)
            w.write("\n")

    print(f"Wrote {len(all_records)} entries to {output_path} (dim={embedder.dimension})")


if __name__ == "__main__":
    main()
