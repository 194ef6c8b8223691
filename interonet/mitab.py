"""
MITAB interaction-evidence records and their pair-indexed store
"""

import gzip
import hashlib
import json
import logging
import re
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Set, Tuple, Union

from .pairstore import SymmetricPairStore

logger = logging.getLogger(__name__)

MITAB_WIDTHS = (15, 42)

MITAB_COLUMNS = [
    "idA", "idB", "altA", "altB", "aliasA", "aliasB", "interactionDetectionMethod",
    "firstAuthor", "pubid", "taxidA", "taxidB", "interactionTypes", "sourceDatabases",
    "interactionIdentifiers", "confidenceScore", "complexExpansion", "biologicalRoleA",
    "biologicalRoleB", "experimentalRoleA", "experimentalRoleB", "interactorTypeA",
    "interactorTypeB", "xRefA", "xRefB", "xRefInteraction", "annotationA", "annotationB",
    "annotationInteraction", "taxidHost", "parameters", "creationDate", "updateDate",
    "checksumA", "checksumB", "checksumInteraction", "negative", "featuresA", "featuresB",
    "stoichiometryA", "stoichiometryB", "identificationMethodA", "identificationMethodB",
]

FIELD_PATTERN = re.compile(r'^([^:^"\n]+:)?"?([^"(\n]+)"?\(?(.+?)?\)?$')
UNIPROT_PATTERN = re.compile(r'[OPQ][0-9][A-Z0-9]{3}[0-9]|[A-NR-Z][0-9]([A-Z][A-Z0-9]{2}[0-9]){1,2}')


class MitabParseError(ValueError):
    """Raised when a MITAB line does not have 15 or 42 columns"""


class MitabField:
    """One ``[type:]value[(annotation)]`` token of a MITAB cell"""

    def __init__(self, element: str):
        match = FIELD_PATTERN.match(element)
        if match:
            self.type: Optional[str] = match.group(1)
            self.value: str = match.group(2)
            self.annotation: Optional[str] = match.group(3)
        else:
            self.type = None
            self.value = element
            self.annotation = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MitabField):
            return NotImplemented
        return (self.value, self.type, self.annotation) == (other.value, other.type, other.annotation)

    def __str__(self) -> str:
        return ((self.type or '') + (f'"{self.value}"' if self.value else '')
                + (f'({self.annotation})' if self.annotation else ''))

    def __repr__(self) -> str:
        return f"MitabField({str(self)!r})"


class MitabColumn:
    """A tab-delimited MITAB cell: pipe-separated fields"""

    def __init__(self, column: str):
        self.fields: List[MitabField] = [MitabField(e) for e in column.split('|')]

    def __iter__(self) -> Iterator[MitabField]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def __getitem__(self, index: int) -> MitabField:
        return self.fields[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MitabColumn):
            return NotImplemented
        return self.fields == other.fields

    def __str__(self) -> str:
        return '|'.join(str(e) for e in self.fields)

    def at(self, key: str) -> List[str]:
        """Values of the fields typed ``key:``"""
        return [e.value for e in self.fields if e.type == key + ':']

    @property
    def content(self) -> List[Tuple[Optional[str], str]]:
        return [(e.type, e.value) for e in self.fields]

    @property
    def value(self) -> str:
        return '|'.join(e.value for e in self.fields)


class MitabRecord:
    """A parsed MITAB line (15 or 42 columns)"""

    def __init__(self, raw: str, keep_raw: bool = False):
        cells = [c for c in re.split(r'\t+', raw) if c.strip()]
        if len(cells) not in MITAB_WIDTHS:
            raise MitabParseError(
                f"Incorrect number of tabulated fields on input [{len(cells)}] at:\n{raw}"
            )

        self.columns: List[MitabColumn] = [MitabColumn(c) for c in cells]
        self.hash = hashlib.md5(raw.encode('utf-8')).hexdigest()
        self.raw: Optional[str] = raw if keep_raw else None

    @classmethod
    def create(cls, id1: str, id2: str, tax_ids: List[str], mi_ids: List[str],
               pubmed_ids: List[str]) -> 'MitabRecord':
        """Synthesize a 15-column record supporting a manually asserted interaction"""
        methods = '|'.join(f'psi-mi:"{m if m.startswith("MI:") else "MI:" + m}"' for m in mi_ids)
        taxa = '|'.join(tax_ids) or '-'
        cells = [id1, id2, '-', '-', '-', '-', methods or '-', '-', '|'.join(pubmed_ids) or '-',
                 taxa, taxa, '-', '-', '-', '-']
        return cls('\t'.join(cells))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MitabRecord):
            return NotImplemented
        return self.hash == other.hash

    def __hash__(self) -> int:
        return hash(self.hash)

    def __len__(self) -> int:
        return len(self.columns)

    def __str__(self) -> str:
        return '\t'.join(str(c) for c in self.columns)

    def __repr__(self) -> str:
        return f"MitabRecord({self.ids[0]!r}, {self.ids[1]!r}, pmid={self.pmid!r})"

    @property
    def ids(self) -> Tuple[str, str]:
        return (self.columns[0].value.split(':')[:2][-1],
                self.columns[1].value.split(':')[:2][-1])

    @property
    def taxid(self) -> Tuple[str, str]:
        return self.columns[9][0].value, self.columns[10][0].value

    species = taxid

    @property
    def full_species(self) -> Tuple[str, str]:
        """Like ``species`` but preferring the longest annotation of each side"""
        names = []
        for column in (self.columns[9], self.columns[10]):
            longest = max((f.annotation for f in column if f.annotation), key=len, default=None)
            names.append(longest or column[0].value)
        return names[0], names[1]

    @property
    def pmid(self) -> str:
        for field in self.columns[8]:
            if field.type == 'pubmed:':
                return field.value
        return self.columns[8][0].value

    @property
    def source(self) -> str:
        first = self.columns[12][0]
        return first.annotation if first.annotation else first.value

    @property
    def interaction_detection_method(self) -> str:
        return self.columns[6][0].value

    @property
    def interactors(self) -> Tuple[List[Tuple[Optional[str], str]], List[Tuple[Optional[str], str]]]:
        return (self.columns[0].content + self.columns[2].content,
                self.columns[1].content + self.columns[3].content)

    @staticmethod
    def _uniprot_capture(value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        match = UNIPROT_PATTERN.search(value)
        return match.group(0) if match else None

    @property
    def uniprot_pair(self) -> Optional[Tuple[str, str]]:
        """Sorted UniProt accessions of both interactors, or None"""
        a = self._uniprot_capture(self.columns[0][0].value) or self._uniprot_capture(self.columns[2][0].value)
        b = self._uniprot_capture(self.columns[1][0].value) or self._uniprot_capture(self.columns[3][0].value)

        if a and b:
            return (b, a) if b < a else (a, b)
        return None

    def to_dict(self) -> Dict[str, str]:
        return {name: str(column) for name, column in zip(MITAB_COLUMNS, self.columns)}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


class MitabStore:
    """MITAB records indexed by unordered interactor pair"""

    def __init__(self, keep_raw: bool = False):
        self.keep_raw = keep_raw
        self.records: SymmetricPairStore[List[MitabRecord]] = SymmetricPairStore(append=True)
        # publication id -> source database that first reported it
        self.publications: Dict[str, str] = {}

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[MitabRecord]:
        for _, _, lines in self.records:
            yield from lines

    def __str__(self) -> str:
        return '\n'.join(str(record) for record in self)

    def has(self, protein_id: str) -> bool:
        return self.records.exists(protein_id)

    def has_couple(self, id1: str, id2: str) -> bool:
        return self.records.has_couple(id1, id2)

    def get(self, protein_id: str) -> List[MitabRecord]:
        """Every record involving ``protein_id``"""
        lines = []
        for records in self.records.get_node(protein_id).values():
            lines.extend(records)
        return lines

    def get_couple(self, id1: str, id2: str) -> List[MitabRecord]:
        return self.records.get(id1, id2, [])

    def couples(self) -> Iterator[Tuple[str, str, List[MitabRecord]]]:
        yield from self.records

    def _register_publication(self, record: MitabRecord) -> bool:
        pmid = record.pmid
        source = record.source.lower()

        known = self.publications.get(pmid)
        if known is None:
            self.publications[pmid] = source
            return True
        if known == source:
            return True

        logger.warning(f"Publication {pmid} provided by {source} has already been "
                       f"fetched from {known}")
        return False

    def add(self, *records: MitabRecord) -> None:
        for record in records:
            id1, id2 = record.ids
            existing = self.records.get(id1, id2, [])
            if all(line != record for line in existing):
                self._register_publication(record)
                self.records.push(id1, id2, record)

    def parse_line(self, line: str, added: Optional[List[MitabRecord]] = None) -> None:
        if not line.strip() or line.startswith('#'):
            return

        record = MitabRecord(line.rstrip('\r\n'), self.keep_raw)
        if added is not None:
            added.append(record)
        self.add(record)

    def read_lines(self, lines: Union[str, Iterable[str]]) -> List[MitabRecord]:
        """Parse and register lines; returns the records parsed (duplicates included)"""
        if isinstance(lines, str):
            lines = lines.split('\n')

        added: List[MitabRecord] = []
        for line in lines:
            self.parse_line(line, added)
        return added

    def read(self, file_path: Path) -> int:
        """Read a MITAB file (optionally gzipped); returns the number of lines read"""
        file_path = Path(file_path)
        opener = gzip.open if file_path.suffix == '.gz' else open

        logger.info(f"Reading MITAB records from {file_path}")
        line_count = 0
        with opener(file_path, 'rt', encoding='utf-8') as f:
            for line in f:
                line_count += 1
                self.parse_line(line)

        logger.info(f"Read entire file ({line_count:,} lines), {len(self):,} pairs indexed")
        return line_count

    def plus(self, other: 'MitabStore') -> None:
        for _, _, lines in other.couples():
            self.add(*lines)

    def all_partner_pairs(self) -> Dict[str, List[str]]:
        """protein id -> partners, in both directions"""
        couples: Dict[str, Set[str]] = {}
        for id1, id2, _ in self.records:
            couples.setdefault(id1, set()).add(id2)
            couples.setdefault(id2, set()).add(id1)
        return {key: sorted(partners) for key, partners in couples.items()}

    def all_lines_paired(self) -> Dict[str, Dict[str, List[Optional[str]]]]:
        couples: Dict[str, Dict[str, List[Optional[str]]]] = {}
        for id1, id2, lines in self.records:
            raws = [line.raw for line in lines]
            couples.setdefault(id1, {})[id2] = raws
            couples.setdefault(id2, {})[id1] = raws
        return couples

    def flush_raw(self) -> None:
        self.keep_raw = False
        for record in self:
            record.raw = None

    def clear(self) -> None:
        self.records.clear()
        self.publications = {}

    def pmids(self) -> Set[str]:
        return {record.pmid for record in self}

    def to_json(self) -> str:
        return json.dumps({'type': 'mitabResult', 'data': [record.to_dict() for record in self]})

    def topology(self) -> Tuple[Set[str], Dict[Tuple[str, str], List[MitabRecord]]]:
        """UniProt nodes and UniProt pair -> records, for records whose accessions resolve"""
        nodes: Set[str] = set()
        edges: Dict[Tuple[str, str], List[MitabRecord]] = {}

        for record in self:
            pair = record.uniprot_pair
            if not pair:
                continue
            nodes.update(pair)
            edges.setdefault(pair, []).append(record)

        return nodes, edges

    def filter(self, uniprot_ids: Optional[Iterable[str]] = None,
               predicate: Optional[Callable[[MitabRecord], bool]] = None) -> 'MitabStore':
        """New store with the records touching ``uniprot_ids`` or matching ``predicate``"""
        target = MitabStore(keep_raw=self.keep_raw)

        wanted = set(uniprot_ids or ())
        if wanted:
            for record in self:
                pair = record.uniprot_pair
                if pair and wanted.intersection(pair):
                    target.add(record)

        if predicate is not None:
            for record in self:
                if predicate(record):
                    target.add(record)

        return target
