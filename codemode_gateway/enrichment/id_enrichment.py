"""Cross-reference enrichment for domain identifiers found in tool results.

Identifier patterns and the servers that accept each identifier type are
configuration. Enrichment is purely additive: results get an ``_idEnrichment``
key and nothing else changes.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from re import Pattern
from typing import Any, Dict, Iterable, List, Mapping, Optional

logger = logging.getLogger(__name__)

_FLAG_BITS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL}
CONFIDENCE_LEVELS = ("high", "medium", "low")


@dataclass(frozen=True)
class IdPattern:
    id: str
    name: str
    regex: str
    confidence: str = "medium"
    flags: str = ""

    def compile(self) -> Pattern[str]:
        bits = 0
        for ch in self.flags:
            bits |= _FLAG_BITS.get(ch, 0)
        return re.compile(self.regex, bits)


@dataclass(frozen=True)
class ServerCapabilities:
    accepts: List[str] = field(default_factory=list)
    produces: List[str] = field(default_factory=list)
    hints: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DetectedId:
    id: str
    type: str
    confidence: str
    source: str = "text"

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "type": self.type, "confidence": self.confidence, "source": self.source}


DEFAULT_ID_PATTERNS: List[IdPattern] = [
    IdPattern("uniprot_accession", "UniProt accession", r"\b([OPQ][0-9][A-Z0-9]{3}[0-9]|[A-NR-Z][0-9](?:[A-Z][A-Z0-9]{2}[0-9]){1,2})\b", "high"),
    IdPattern("ensembl_gene", "Ensembl gene", r"\b(ENSG\d{11})\b", "high"),
    IdPattern("ensembl_transcript", "Ensembl transcript", r"\b(ENST\d{11})\b", "high"),
    IdPattern("ensembl_protein", "Ensembl protein", r"\b(ENSP\d{11})\b", "high"),
    IdPattern("ncbi_gene", "NCBI Gene ID", r"\bGeneID:\s*(\d+)\b", "medium", "i"),
    IdPattern("pdb", "PDB entry", r"\bPDB[:\s]+([0-9][A-Za-z0-9]{3})\b", "medium"),
    IdPattern("nct", "ClinicalTrials.gov", r"\b(NCT\d{8})\b", "high"),
    IdPattern("pmid", "PubMed ID", r"\bPMID:?\s*(\d{1,9})\b", "high", "i"),
    IdPattern("doi", "DOI", r"\b(10\.\d{4,9}/[^\s\"'<>,;]+)", "high"),
    IdPattern("chembl", "ChEMBL", r"\b(CHEMBL\d+)\b", "high"),
    IdPattern("drugbank", "DrugBank", r"\b(DB\d{5})\b", "high"),
    IdPattern("hgnc", "HGNC", r"\bHGNC:(\d+)\b", "high"),
    IdPattern("orcid", "ORCID", r"\b(\d{4}-\d{4}-\d{4}-\d{3}[\dX])\b", "high"),
    IdPattern("ror", "ROR", r"ror\.org/(0[a-z0-9]{6}\d{2})\b", "high"),
    IdPattern("crossref_funder", "Crossref funder", r"\b(10\.13039/\d+)\b", "high"),
]

DEFAULT_SERVER_CAPABILITIES: Dict[str, ServerCapabilities] = {
    "entrez": ServerCapabilities(
        accepts=["pmid", "ncbi_gene", "doi"],
        produces=["pmid", "ncbi_gene", "doi"],
        hints={"pmid": "use entrez_query with database 'pubmed'", "ncbi_gene": "use database 'gene'"},
    ),
    "datacite": ServerCapabilities(
        accepts=["doi", "orcid", "ror", "crossref_funder"],
        produces=["doi", "orcid", "ror"],
        hints={"doi": "query works by DOI", "orcid": "filter creators by ORCID"},
    ),
    "ncigdc": ServerCapabilities(
        accepts=["ensembl_gene", "nct"],
        produces=["ensembl_gene"],
        hints={"ensembl_gene": "filter genes by gene_id"},
    ),
}


def parse_id_patterns(raw: Iterable[Mapping[str, Any]]) -> List[IdPattern]:
    """Build patterns from config entries; entries without a regex are skipped."""
    patterns: List[IdPattern] = []
    for item in raw:
        if not item.get("regex"):
            continue
        confidence = item.get("confidence", "medium")
        patterns.append(
            IdPattern(
                id=str(item["id"]),
                name=str(item.get("name", item["id"])),
                regex=str(item["regex"]),
                confidence=confidence if confidence in CONFIDENCE_LEVELS else "medium",
                flags=str(item.get("flags") or "").replace("g", ""),
            )
        )
    return patterns


def parse_server_capabilities(raw: Mapping[str, Mapping[str, Any]]) -> Dict[str, ServerCapabilities]:
    return {
        name: ServerCapabilities(
            accepts=list(caps.get("accepts") or []),
            produces=list(caps.get("produces") or []),
            hints=dict(caps.get("hints") or {}),
        )
        for name, caps in raw.items()
    }


def build_cross_reference_map(capabilities: Mapping[str, ServerCapabilities]) -> Dict[str, Dict[str, Any]]:
    """Map each identifier type to the servers accepting it and their hints."""
    xref: Dict[str, Dict[str, Any]] = {}
    for server, caps in capabilities.items():
        for id_type in caps.accepts:
            entry = xref.setdefault(id_type, {"servers": [], "serverHints": {}})
            entry["servers"].append(server)
            if id_type in caps.hints:
                entry["serverHints"][server] = caps.hints[id_type]
    return xref


def _serialize(value: Any) -> str:
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    try:
        return json.dumps(value, default=str)
    except (TypeError, ValueError):
        return str(value)


class IdEnricher:
    """Detects identifiers and attaches cross-reference hints."""

    def __init__(
        self,
        patterns: Optional[Iterable[IdPattern]] = None,
        capabilities: Optional[Mapping[str, ServerCapabilities]] = None,
        *,
        active_servers: Optional[Iterable[str]] = None,
    ) -> None:
        self.patterns = list(DEFAULT_ID_PATTERNS if patterns is None else patterns)
        self._compiled = [(p, p.compile()) for p in self.patterns]
        caps = dict(DEFAULT_SERVER_CAPABILITIES if capabilities is None else capabilities)
        if active_servers is not None:
            active = set(active_servers)
            caps = {name: c for name, c in caps.items() if name in active}
        self.cross_references = build_cross_reference_map(caps)

    def detect_ids(self, value: Any) -> List[DetectedId]:
        text = _serialize(value)
        found: List[DetectedId] = []
        seen = set()
        for pattern, compiled in self._compiled:
            for match in compiled.finditer(text):
                ident = match.group(1) if compiled.groups else match.group(0)
                ident = ident.rstrip(".)")
                key = (pattern.id, ident)
                if not ident or key in seen:
                    continue
                seen.add(key)
                found.append(DetectedId(id=ident, type=pattern.id, confidence=pattern.confidence))
        return found

    def enrich_with_cross_references(self, detected: Iterable[DetectedId]) -> Dict[str, Any]:
        hints: List[Dict[str, Any]] = []
        for item in detected:
            entry = self.cross_references.get(item.type)
            if not entry or not entry["servers"]:
                continue
            parts = [f"{s}: {entry['serverHints'][s]}" for s in entry["servers"] if s in entry["serverHints"]]
            hints.append(
                {
                    "fromId": item.id,
                    "fromType": item.type,
                    "relatedServers": list(entry["servers"]),
                    "usageHint": ". ".join(parts) if parts else f"Can be used with: {', '.join(entry['servers'])}",
                    "serverIdFormats": dict(entry["serverHints"]),
                }
            )
        summary = ". ".join(
            f"{h['fromType'].replace('_', ' ')} {h['fromId']} can be used with: {', '.join(h['relatedServers'])}"
            for h in hints
        )
        return {"crossReferenceHints": hints, "summary": summary}

    def enrich_tool_result(self, result: Any, tool_name: str = "") -> Any:
        """Return ``result`` plus ``_idEnrichment`` when identifiers are found.

        Non-dict results and results without identifiers are returned unchanged.
        """
        if not isinstance(result, dict):
            return result
        detected = self.detect_ids({k: v for k, v in result.items() if k != "_idEnrichment"})
        if not detected:
            return result
        xref = self.enrich_with_cross_references(detected)
        logger.debug("IdEnricher.enrich_tool_result: %s -> %d ids", tool_name or "?", len(detected))
        enriched = dict(result)
        enriched["_idEnrichment"] = {
            "detectedIds": [d.to_dict() for d in detected],
            "crossReferences": xref["crossReferenceHints"],
            "summary": xref["summary"],
        }
        return enriched
