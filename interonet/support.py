"""
Homology support of inferred edges and the multi-criterion trimming that filters it
"""

import copy
import logging
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set, Tuple, Union

from .mitab import MitabRecord

logger = logging.getLogger(__name__)

# Per-criterion outcome: False when the criterion passed, else a description of the failure
Reasons = Dict[str, Union[bool, str]]


class TaxonMode(Enum):
    """How a record's taxon pair is matched against the required taxa"""
    ALL = 'all'
    ANY = 'any'


class TrimCriteria:
    """Thresholds and filters applied by ``HomologParameterSet.trim``.

    min_similarity / min_identity / min_coverage: percentages, default 0
    max_e_value: default 1
    detection_methods: required MI detection methods, None allows any
    taxa: required taxon ids, None allows any
    taxon_mode: ALL (both taxa of a record must be required) or ANY
    destroy_identical: drop duplicated homolog pairs (needs persist)
    persist: physically remove failing homolog pairs instead of flagging them
    explain: collect per-criterion reasons
    """

    def __init__(self, min_similarity: float = 0.0, min_identity: float = 0.0,
                 min_coverage: float = 0.0, max_e_value: float = 1.0,
                 detection_methods: Optional[Iterable[str]] = None,
                 taxa: Optional[Iterable[str]] = None,
                 taxon_mode: TaxonMode = TaxonMode.ALL,
                 destroy_identical: bool = False, persist: bool = False,
                 explain: bool = False):
        self.min_similarity = min_similarity
        self.min_identity = min_identity
        self.min_coverage = min_coverage
        self.max_e_value = max_e_value
        # empty collections mean "no filter", same as None
        self.detection_methods: Optional[Set[str]] = set(detection_methods) if detection_methods else None
        self.taxa: Optional[Set[str]] = set(taxa) if taxa else None
        self.taxon_mode = TaxonMode(taxon_mode)
        self.destroy_identical = destroy_identical
        self.persist = persist
        self.explain = explain

    @classmethod
    def deduplicate(cls) -> 'TrimCriteria':
        """Permissive trim that only destroys duplicated supports"""
        return cls(destroy_identical=True, persist=True)

    @classmethod
    def strict(cls, min_similarity: float = 30.0, min_identity: float = 30.0,
               min_coverage: float = 50.0, max_e_value: float = 1e-5) -> 'TrimCriteria':
        return cls(min_similarity=min_similarity, min_identity=min_identity,
                   min_coverage=min_coverage, max_e_value=max_e_value)

    def with_explain(self, explain: bool) -> 'TrimCriteria':
        criteria = copy.copy(self)
        criteria.explain = explain
        return criteria

    @property
    def filters_evidence(self) -> bool:
        return self.detection_methods is not None or self.taxa is not None

    def thresholds(self) -> Dict[str, float]:
        return {
            'identity': self.min_identity,
            'similarity': self.min_similarity,
            'coverage': self.min_coverage,
            'e_value': self.max_e_value,
        }

    def __repr__(self) -> str:
        return (f"TrimCriteria(similarity>={self.min_similarity}, identity>={self.min_identity}, "
                f"coverage>={self.min_coverage}, e_value<={self.max_e_value}, "
                f"methods={self.detection_methods}, taxa={self.taxa}, mode={self.taxon_mode.value})")


class HomologParameter:
    """One homolog hit vector: ``[template, total length, start, end, ..., sim, id, e-value]``"""

    def __init__(self, data: List[str], valid: bool = True):
        self.data = data
        self.valid = valid

    @property
    def template(self) -> str:
        return self.data[0]

    @property
    def length(self) -> int:
        return int(self.data[3]) - int(self.data[2]) + 1

    @property
    def similarity(self) -> float:
        return 100 * float(self.data[7]) / self.length

    @property
    def identity(self) -> float:
        return 100 * float(self.data[8]) / self.length

    @property
    def coverage(self) -> float:
        return 100 * self.length / int(self.data[1])

    @property
    def e_value(self) -> float:
        return float(self.data[9])

    def evaluate(self, criteria: TrimCriteria) -> Tuple[bool, Reasons]:
        """Check the four numeric thresholds; reasons are built from the same checks"""
        checks = (
            ('similarity', self.similarity, self.similarity >= criteria.min_similarity,
             f"similarity {self.similarity:.2f} < {criteria.min_similarity}"),
            ('identity', self.identity, self.identity >= criteria.min_identity,
             f"identity {self.identity:.2f} < {criteria.min_identity}"),
            ('coverage', self.coverage, self.coverage >= criteria.min_coverage,
             f"coverage {self.coverage:.2f} < {criteria.min_coverage}"),
            ('e_value', self.e_value, self.e_value <= criteria.max_e_value,
             f"e_value {self.e_value:g} > {criteria.max_e_value}"),
        )

        reasons: Reasons = {name: (False if passed else message) for name, _, passed, message in checks}
        return all(passed for _, _, passed, _ in checks), reasons

    def to_dict(self) -> Dict[str, Any]:
        return {'data': self.data, 'valid': self.valid}

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> 'HomologParameter':
        return cls(list(obj['data']), obj.get('valid', True))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HomologParameter):
            return NotImplemented
        return self.data == other.data and self.valid == other.valid

    def __repr__(self) -> str:
        return f"HomologParameter({self.template!r}, valid={self.valid})"


class MitabLink:
    """An interaction-evidence record linked to one homolog pair, with its own validity"""

    def __init__(self, record: MitabRecord, valid: bool = True):
        self.record = record
        self.valid = valid

    def matches_taxa(self, taxa: Set[str], mode: TaxonMode) -> bool:
        record_taxa = [t for t in self.record.taxid if t and t != '-']
        if not record_taxa:
            return False
        if mode is TaxonMode.ANY:
            return any(t in taxa for t in record_taxa)
        return all(t in taxa for t in record_taxa)

    def __repr__(self) -> str:
        return f"MitabLink({self.record!r}, valid={self.valid})"


class HomologParameterSet:
    """Every homolog pair supporting one candidate edge.

    ``low_params[i]`` and ``high_params[i]`` form one support; ``mitab_links[i]``,
    when populated, holds the interaction evidence between their two templates.
    """

    def __init__(self):
        self.low_params: List[HomologParameter] = []
        self.high_params: List[HomologParameter] = []
        self.mitab_links: List[List[MitabLink]] = []
        self.visible = True

    def __len__(self) -> int:
        """Number of valid supports"""
        return sum(1 for low, high in self if low.valid and high.valid)

    def __iter__(self) -> Iterator[Tuple[HomologParameter, HomologParameter]]:
        return iter(list(zip(self.low_params, self.high_params)))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HomologParameterSet):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"HomologParameterSet(depth={self.depth}, total={len(self.low_params)}, visible={self.visible})"

    @property
    def depth(self) -> int:
        return len(self)

    @property
    def is_empty(self) -> bool:
        return len(self) == 0

    @property
    def templates(self) -> Tuple[List[str], List[str]]:
        """Templates of the valid supports, low side then high side"""
        valid = [(low, high) for low, high in self if low.valid and high.valid]
        return [low.template for low, _ in valid], [high.template for _, high in valid]

    @property
    def full_templates(self) -> Tuple[List[str], List[str]]:
        return [p.template for p in self.low_params], [p.template for p in self.high_params]

    def add(self, low: List[str], high: List[str]) -> None:
        self.low_params.append(HomologParameter(low))
        self.high_params.append(HomologParameter(high))
        if self.mitab_links:
            self.mitab_links.append([])

    def remove(self) -> None:
        self.low_params = []
        self.high_params = []
        self.mitab_links = []
        self.visible = False

    def links_at(self, index: int) -> List[MitabLink]:
        return self.mitab_links[index] if index < len(self.mitab_links) else []

    def full_iterator(self, visible_only: bool = False) -> Iterator[Tuple[HomologParameter, HomologParameter, List[MitabRecord]]]:
        for i, (low, high) in enumerate(self):
            if visible_only and not (low.valid and high.valid):
                continue
            links = self.links_at(i)
            yield low, high, [link.record for link in links if link.valid or not visible_only]

    def trim(self, criteria: Optional[TrimCriteria] = None) -> List[Tuple[Reasons, Reasons]]:
        """Toggle support validity against ``criteria``.

        Returns one (low reasons, high reasons) pair per support when ``criteria.explain``
        is set, otherwise an empty list. Only ``persist`` shrinks storage.
        """
        criteria = criteria or TrimCriteria()
        self.visible = True

        explanations: List[Tuple[Reasons, Reasons]] = []
        to_remove: Set[int] = set()

        for i, (low, high) in enumerate(self):
            low.valid, low_reasons = low.evaluate(criteria)
            high.valid, high_reasons = high.evaluate(criteria)
            links = self.links_at(i)

            if criteria.filters_evidence and low.valid and high.valid:
                for link in links:
                    if criteria.detection_methods is not None:
                        link.valid = link.record.interaction_detection_method in criteria.detection_methods
                    else:
                        link.valid = True

                    if link.valid and criteria.taxa is not None:
                        link.valid = link.matches_taxa(criteria.taxa, criteria.taxon_mode)

                if not any(link.valid for link in links):
                    low.valid = high.valid = False
                    low_reasons['evidence'] = high_reasons['evidence'] = "no matching interaction evidence"
            elif low.valid and high.valid:
                for link in links:
                    link.valid = True

            if not (low.valid and high.valid):
                low.valid = high.valid = False
                for link in links:
                    link.valid = False
                to_remove.add(i)

            if criteria.explain:
                explanations.append((low_reasons, high_reasons))

        if criteria.destroy_identical:
            seen: Set[Tuple[str, ...]] = set()
            for i, (low, high) in enumerate(self):
                signature = tuple(low.data) + ('|',) + tuple(high.data)
                if signature in seen:
                    to_remove.add(i)
                else:
                    seen.add(signature)

        if criteria.persist and to_remove:
            keep = [i for i in range(len(self.low_params)) if i not in to_remove]
            self.low_params = [self.low_params[i] for i in keep]
            self.high_params = [self.high_params[i] for i in keep]
            if self.mitab_links:
                self.mitab_links = [self.links_at(i) for i in keep]

        return explanations

    def valid_view(self) -> Dict[str, Any]:
        """Valid supports only, with their linked records as MITAB text"""
        low, high, links = [], [], []
        for i, (lo, hi) in enumerate(self):
            if lo.valid and hi.valid:
                low.append(lo.to_dict())
                high.append(hi.to_dict())
                links.append([str(link.record) for link in self.links_at(i) if link.valid])
        return {'low_params': low, 'high_params': high, 'mitab_links': links, 'visible': self.visible}

    def to_dict(self) -> Dict[str, Any]:
        return {
            'low_params': [p.to_dict() for p in self.low_params],
            'high_params': [p.to_dict() for p in self.high_params],
            'visible': self.visible,
        }

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> 'HomologParameterSet':
        parameter_set = cls()
        parameter_set.low_params = [HomologParameter.from_dict(p) for p in obj['low_params']]
        parameter_set.high_params = [HomologParameter.from_dict(p) for p in obj['high_params']]
        parameter_set.visible = obj.get('visible', True)
        return parameter_set
