"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/relations.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Relation suggestions and duplicate detection by embedding
                similarity, plus manual relation management.
------------------------------------------------------------------------------
"""

import re
from typing import Dict, List, Optional, Set, Tuple

import numpy as np

from papermind.errors import NotFoundError
from papermind.logger import get_logger
from papermind.models import (
    DocumentRelation,
    DocumentSummary,
    DuplicateGroup,
    DuplicatePair,
    DuplicateScan,
    RelationSuggestion,
    normalize_pair,
)
from papermind.repositories import DocumentRepository, RelationRepository

logger = get_logger("relations")

DEFAULT_SUGGESTIONS = 5
DEFAULT_DUPLICATE_THRESHOLD = 0.90
MIN_DUPLICATE_THRESHOLD = 0.70
MAX_DUPLICATE_THRESHOLD = 0.99
MAX_DUPLICATE_PAIRS = 500

PUNCTUATION_RE = re.compile(r"[^\w\s]")


def cosine_distances(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """1 - cosine similarity of query against every row. Zero vectors get distance 1."""
    query_norm = np.linalg.norm(query)
    row_norms = np.linalg.norm(matrix, axis=1)
    denom = row_norms * query_norm
    sims = np.zeros(len(matrix), dtype=np.float64)
    nonzero = denom > 0
    sims[nonzero] = (matrix[nonzero] @ query) / denom[nonzero]
    return 1.0 - sims


def similarity_percent(distance: float) -> float:
    return round((1.0 - float(distance)) * 1000) / 10


def text_tokens(text: str) -> Set[str]:
    """Lowercased words longer than three characters, punctuation stripped."""
    return {w for w in PUNCTUATION_RE.sub(" ", text.lower()).split() if len(w) > 3}


def jaccard_similarity(text1: Optional[str], text2: Optional[str]) -> float:
    if not text1 or not text2:
        return 0.0
    s1, s2 = text_tokens(text1), text_tokens(text2)
    if not s1 and not s2:
        return 1.0
    return len(s1 & s2) / len(s1 | s2)


def group_connected(pairs: List[Tuple[str, str]]) -> List[List[str]]:
    """Union-find over id pairs; returns groups of two or more ids."""
    parent: Dict[str, str] = {}

    def find(x: str) -> str:
        while parent[x] != x:
            parent[x] = parent[parent[x]]
            x = parent[x]
        return x

    for a, b in pairs:
        parent.setdefault(a, a)
        parent.setdefault(b, b)
        parent[find(a)] = find(b)

    groups: Dict[str, List[str]] = {}
    for node in parent:
        groups.setdefault(find(node), []).append(node)
    return [g for g in groups.values() if len(g) > 1]


class RelationSuggester:
    """Finds semantically close, not yet related documents."""

    def __init__(self, documents: DocumentRepository, relations: RelationRepository) -> None:
        self.documents = documents
        self.relations = relations

    def suggest(self, document_id: str, limit: int = DEFAULT_SUGGESTIONS) -> List[RelationSuggestion]:
        """
        Ranks candidates by cosine distance to the source embedding.

        Raises:
            NotFoundError: If the source document does not exist.
        """
        source = self.documents.get(document_id)
        if source is None:
            raise NotFoundError(f"Document not found: {document_id}")
        if not source.embedding:
            logger.debug(f"No embedding for {document_id}, no suggestions")
            return []

        excluded = self.relations.related_ids(document_id) | {document_id}
        candidates = self.documents.list_with_embedding(exclude_ids=excluded)
        candidates = [c for c in candidates if c.embedding and len(c.embedding) == len(source.embedding)]
        if not candidates:
            return []

        matrix = np.array([c.embedding for c in candidates], dtype=np.float64)
        distances = cosine_distances(np.array(source.embedding, dtype=np.float64), matrix)
        # Stable sort keeps insertion order among equal distances
        order = np.argsort(distances, kind="stable")[:limit]

        return [
            RelationSuggestion(
                document=DocumentSummary.from_document(candidates[i]),
                similarity=similarity_percent(distances[i]),
            )
            for i in order
        ]

    def find_duplicates(self, threshold: float = DEFAULT_DUPLICATE_THRESHOLD) -> DuplicateScan:
        """
        Groups active documents whose embeddings are more similar than
        threshold (cosine similarity, clamped to 0.70..0.99). Pairs are
        joined transitively, so a group can hold more than two documents.
        Each pair also reports the word overlap of the extracted texts.
        """
        threshold = min(MAX_DUPLICATE_THRESHOLD, max(MIN_DUPLICATE_THRESHOLD, float(threshold)))
        docs = [d for d in self.documents.list_with_embedding() if d.embedding]
        if docs:
            dimension = len(docs[0].embedding)
            docs = [d for d in docs if len(d.embedding) == dimension]
        scan = DuplicateScan(scanned=len(docs), threshold=threshold)
        if len(docs) < 2:
            return scan

        matrix = np.array([d.embedding for d in docs], dtype=np.float64)
        candidates: List[Tuple[float, str, str]] = []
        for i in range(len(docs) - 1):
            sims = 1.0 - cosine_distances(matrix[i], matrix[i + 1:])
            for offset in np.nonzero(sims > threshold)[0]:
                id1, id2 = normalize_pair(docs[i].id, docs[i + 1 + offset].id)
                candidates.append((float(sims[offset]), id1, id2))
        candidates.sort(key=lambda c: c[0], reverse=True)
        candidates = candidates[:MAX_DUPLICATE_PAIRS]
        if not candidates:
            return scan

        by_id = {d.id: d for d in docs}
        pairs = [
            DuplicatePair(
                id1=id1,
                id2=id2,
                embedding_similarity=round(sim * 1000) / 10,
                text_similarity=round(jaccard_similarity(by_id[id1].content, by_id[id2].content) * 1000) / 10,
            )
            for sim, id1, id2 in candidates
        ]

        for ids in group_connected([(p.id1, p.id2) for p in pairs]):
            members = set(ids)
            group_pairs = [p for p in pairs if p.id1 in members and p.id2 in members]
            scan.groups.append(DuplicateGroup(
                documents=[DocumentSummary.from_document(by_id[i]) for i in ids],
                pairs=group_pairs,
                max_similarity=max(p.embedding_similarity for p in group_pairs),
                max_text_similarity=max(p.text_similarity for p in group_pairs),
            ))
        scan.groups.sort(key=lambda g: g.max_similarity, reverse=True)
        logger.info(f"Duplicate scan over {scan.scanned} document(s): {len(scan.groups)} group(s) above {threshold:.2f}")
        return scan

    # --- Manual relations ---

    def create_relation(self, document_a: str, document_b: str, relation_type: str = "related") -> DocumentRelation:
        for document_id in (document_a, document_b):
            if not self.documents.exists(document_id):
                raise NotFoundError(f"Document not found: {document_id}")
        relation = self.relations.create(document_a, document_b, relation_type)
        logger.info(f"Related {relation.source_id} <-> {relation.target_id} ({relation_type})")
        return relation

    def list_relations(self, document_id: str) -> List[DocumentRelation]:
        return self.relations.list_for(document_id)

    def delete_relation(self, relation_id: str) -> None:
        if not self.relations.delete(relation_id):
            raise NotFoundError(f"Relation not found: {relation_id}")
