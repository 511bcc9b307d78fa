"""
Context Assembler
------------------
Turns ranked chunks into the two things the prompt needs:

  - the context block, one entry per chunk:

        [SRC-1]
        Source: Nigeria Tax Act 2025
        Content:
        <chunk text>

    entries separated by a "---" line;

  - the source map, citation id -> display name (file extension dropped).
    Several ids may share one display name when the chunks come from the
    same document; citations are per document, not per chunk.

Ids are assigned from the order of the input, whatever ids the chunks
already carry.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field

from taxrag.retrieval.retriever import citation_id
from taxrag.schemas import RetrievedChunk, SourceCitation
from taxrag.utils.helpers import format_similarity

CHUNK_DELIMITER = "\n\n---\n\n"

# A trailing ".pdf", ".DOCX", ".txt" ... but not the ".2" of "Finance Act v1.2"
_EXTENSION_RE = re.compile(r"\.[a-z][a-z0-9]{0,4}$", re.IGNORECASE)


def clean_source_name(source: str) -> str:
    """Strip one trailing file extension, case-insensitively."""
    cleaned = _EXTENSION_RE.sub("", source.strip())
    return cleaned or source.strip()


@dataclass
class AssembledContext:
    context: str
    source_map: dict[str, str] = field(default_factory=dict)
    chunks: list[RetrievedChunk] = field(default_factory=list)

    @property
    def source_names(self) -> list[str]:
        """Distinct display names in first-appearance order."""
        return list(dict.fromkeys(self.source_map.values()))

    @property
    def citations(self) -> list[SourceCitation]:
        """One entry per chunk, in rank order, similarity to 4 decimals."""
        return [
            SourceCitation(
                source=clean_source_name(c.source),
                similarity=format_similarity(c.similarity),
            )
            for c in self.chunks
        ]

    @property
    def is_empty(self) -> bool:
        return not self.chunks


class ContextAssembler:

    def __init__(self, delimiter: str = CHUNK_DELIMITER) -> None:
        self.delimiter = delimiter

    def assemble(self, chunks: list[RetrievedChunk]) -> AssembledContext:
        tagged: list[RetrievedChunk] = []
        source_map: dict[str, str] = {}
        parts: list[str] = []

        for rank, chunk in enumerate(chunks, start=1):
            cid = citation_id(rank)
            name = clean_source_name(chunk.source)
            source_map[cid] = name
            tagged.append(chunk.model_copy(update={"citation_id": cid}))
            parts.append(f"[{cid}]\nSource: {name}\nContent:\n{chunk.content}")

        return AssembledContext(
            context=self.delimiter.join(parts),
            source_map=source_map,
            chunks=tagged,
        )
