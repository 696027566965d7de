import json

import numpy as np
import pytest

from persona.config import load_config
from persona.embedding import HashEmbedder, TransformersEmbedder, build_embedder, embed_pattern
from persona.semantic import cosine_similarity


def test_hash_embedder_is_deterministic_and_normalized():
    embedder = HashEmbedder(dimension=64)
    a = embedder.embed("Fear of death")
    assert a == embedder.embed("  fear OF death! ")
    assert len(a) == 64
    assert np.linalg.norm(a) == pytest.approx(1.0)


def test_hash_embedder_overlap_scores_higher():
    embedder = HashEmbedder()
    query = embedder.embed("afraid of death")
    assert cosine_similarity(query, embedder.embed("fear of death")) > cosine_similarity(
        query, embedder.embed("good morning friend")
    )


def test_hash_embedder_empty_text_is_zero_vector():
    assert not any(HashEmbedder(dimension=8).embed("   "))


def test_embed_pattern_normalizes_first():
    class Recorder:
        dimension = 2

        def __init__(self):
            self.seen = []

        def embed(self, text):
            self.seen.append(text)
            return [1.0, 0.0]

    recorder = Recorder()
    assert embed_pattern(recorder, "  What CAN I control? ") == [1.0, 0.0]
    assert recorder.seen == ["what can i control"]


def test_build_embedder_from_config():
    assert isinstance(build_embedder({"embedding": {"backend": "hash", "dim": 32}}), HashEmbedder)
    transformer = build_embedder({"embedding": {"model_id": "some/model", "dim": 768}})
    assert isinstance(transformer, TransformersEmbedder)
    assert transformer.dimension == 768
    assert transformer._model is None
    with pytest.raises(ValueError):
        build_embedder({"embedding": {"backend": "word2vec"}})


def test_load_config_json_and_yaml(tmp_path):
    json_path = tmp_path / "c.json"
    json_path.write_text(json.dumps({"semantic": {"threshold": 0.8}}), encoding="utf-8")
    assert load_config(str(json_path))["semantic"]["threshold"] == 0.8

    yaml_path = tmp_path / "c.yaml"
    yaml_path.write_text("semantic:\n  threshold: 0.7\n", encoding="utf-8")
    assert load_config(str(yaml_path))["semantic"]["threshold"] == 0.7

    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "missing.json"))
    bad = tmp_path / "c.toml"
    bad.write_text("", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(str(bad))
