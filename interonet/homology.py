"""
Homology index: per-protein BLAST hit vectors against the reference proteome
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

HOMOLOGY_VERSION = 2
SUPPORTED_HOMOLOGY_VERSIONS = (1, 2)

# Placeholder hit vector for manually asserted edges
PLACEHOLDER_LENGTH = "100"
PLACEHOLDER_E_VALUE = "1e-150"


class UnsupportedVersionError(ValueError):
    """Raised when a serialized payload carries a version this package cannot read"""


# protein id -> homolog id -> list of hit vectors
HomologInfo = Dict[str, Dict[str, List[List[str]]]]
# homolog id -> [source protein id, *hit vector]
HomologChildren = Dict[str, List[str]]


class HomologyIndex:
    """Homologs of each interaction-evidence protein, with their alignment statistics"""

    def __init__(self, data: Optional[HomologInfo] = None, taxid: Optional[str] = None):
        self.data: HomologInfo = data if data is not None else {}
        self.taxid = str(taxid) if taxid is not None else None

    @classmethod
    def from_json(cls, obj: Dict[str, Any]) -> 'HomologyIndex':
        """Accept either a bare ``{protein: {homolog: [...]}}`` table or a versioned dump"""
        if 'version' in obj and 'data' in obj:
            version = obj['version']
            if version not in SUPPORTED_HOMOLOGY_VERSIONS:
                raise UnsupportedVersionError(f"Unsupported HomologyIndex version: {version}")
            return cls(obj['data'], obj.get('taxid'))
        if 'taxid' in obj and 'data' in obj:
            return cls(obj['data'], obj['taxid'])
        return cls(obj)

    @classmethod
    def from_file(cls, file_path: Path) -> 'HomologyIndex':
        logger.info(f"Loading homology index from {file_path}")
        with open(file_path) as f:
            index = cls.from_json(json.load(f))
        logger.info(f"Homology index loaded: {len(index):,} proteins (taxid {index.taxid})")
        return index

    @classmethod
    def from_serialized(cls, serialized: Union[str, Dict[str, Any]]) -> 'HomologyIndex':
        obj = json.loads(serialized) if isinstance(serialized, str) else serialized
        version = obj.get('version')
        if version not in SUPPORTED_HOMOLOGY_VERSIONS:
            raise UnsupportedVersionError(f"Unsupported HomologyIndex version: {version}")
        return cls(obj['data'], obj.get('taxid') if version >= 2 else None)

    def to_dict(self) -> Dict[str, Any]:
        return {'data': self.data, 'taxid': self.taxid, 'version': HOMOLOGY_VERSION}

    def serialize(self) -> str:
        return json.dumps(self.to_dict())

    def __len__(self) -> int:
        return len(self.data)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self.data))

    def __contains__(self, protein_id: str) -> bool:
        return protein_id in self.data

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HomologyIndex):
            return NotImplemented
        return self.data == other.data and self.taxid == other.taxid

    def children_data(self, protein_id: str) -> HomologChildren:
        """Homologs of ``protein_id``, each with ``[protein_id, *first hit vector]``"""
        homologs = self.data.get(protein_id)
        if not homologs:
            return {}

        return {homolog: [protein_id, *hits[0]] for homolog, hits in homologs.items() if hits}

    def _add_partial_artefactual(self, source: str, target: str) -> HomologChildren:
        end = str(int(PLACEHOLDER_LENGTH) + 1)
        homologs = self.data.setdefault(source, {})
        if target not in homologs:
            homologs[target] = [[PLACEHOLDER_LENGTH, "1", end, PLACEHOLDER_LENGTH, "1", end,
                                 PLACEHOLDER_LENGTH, PLACEHOLDER_LENGTH, PLACEHOLDER_E_VALUE]]

        return {target: [source, *homologs[target][0]]}

    def add_artefactual(self, source: str, target: str) -> Tuple[HomologChildren, HomologChildren]:
        """Register placeholder homology for a manually asserted source-target edge"""
        return (self._add_partial_artefactual(source, target),
                self._add_partial_artefactual(target, source))
