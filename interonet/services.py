"""
HTTP collaborators: partner lookup, UniProt annotation and GO term containers
"""

import logging
import re
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Pattern, Set, Tuple, Union

import httpx

logger = logging.getLogger(__name__)

DEFAULT_PACKET_SIZE = 128
DEFAULT_TIMEOUT = 30.0

# protein id -> {"partners": [protein id, ...]}
PartnerPage = Dict[str, Dict[str, List[str]]]


class PartnerService:
    """Paginated client of a partner-lookup service.

    The service answers ``POST {"keys": [...]}`` with ``{"request": {id: {"partners": [...]}}}``.
    """

    def __init__(self, url: str, packet_size: int = DEFAULT_PACKET_SIZE,
                 timeout: float = DEFAULT_TIMEOUT,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url
        self.packet_size = packet_size
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def _request(self, client: httpx.AsyncClient, keys: List[str]) -> PartnerPage:
        response = await client.post(self.url, json={'keys': keys})
        response.raise_for_status()
        return response.json().get('request', {})

    async def bulk_get(self, ids: Iterable[str],
                       packet_size: Optional[int] = None) -> AsyncIterator[PartnerPage]:
        """Yield one page of partners per packet of ids, strictly one request at a time"""
        packet_size = packet_size or self.packet_size
        packet: List[str] = []

        async with self._client() as client:
            for protein_id in ids:
                packet.append(protein_id)
                if len(packet) >= packet_size:
                    yield await self._request(client, packet)
                    packet = []

            if packet:
                yield await self._request(client, packet)

    async def get_all(self, protein_id: str) -> List[Tuple[str, str]]:
        """Every (protein_id, partner) pair known to the service"""
        pairs = []
        async for page in self.bulk_get([protein_id]):
            for partner in page.get(protein_id, {}).get('partners', []):
                pairs.append((protein_id, partner))
        return pairs


class GoTermsContainer:
    """GO terms and the proteins annotated with them"""

    def __init__(self):
        # GO id -> (term name, protein accessions)
        self.data: Dict[str, Tuple[str, Set[str]]] = {}

    @staticmethod
    def _normalize(term_id: str) -> str:
        return term_id if term_id.startswith('GO:') else f"GO:{term_id}"

    def add(self, proteins: Dict[str, Dict[str, Dict[str, str]]]) -> None:
        """Register ``{protein: {go_id: {"term": ..., "source": ...}}}``"""
        for protein_id, terms in proteins.items():
            for term_id, term in terms.items():
                term_id = self._normalize(term_id)
                if term_id not in self.data:
                    self.data[term_id] = (term.get('term', ''), set())
                self.data[term_id][1].add(protein_id)

    def search(self, term_id: str) -> List[str]:
        entry = self.data.get(self._normalize(term_id))
        return sorted(entry[1]) if entry else []

    def bulk_search(self, term_ids: Iterable[str]) -> List[str]:
        found: Set[str] = set()
        for term_id in term_ids:
            found.update(self.search(term_id))
        return sorted(found)

    def query(self, query: Union[str, Pattern]) -> List[str]:
        """GO ids whose term name matches ``query``"""
        pattern = re.compile(query) if isinstance(query, str) else query
        return [term_id for term_id, (name, _) in self.data.items() if pattern.search(name)]

    def search_by_protein(self, protein_id: str) -> List[str]:
        return [term_id for term_id, (_, proteins) in self.data.items() if protein_id in proteins]

    def term_name(self, term_id: str) -> Optional[str]:
        entry = self.data.get(self._normalize(term_id))
        return entry[0] if entry else None

    def __iter__(self):
        return ((term_id, proteins) for term_id, (_, proteins) in self.data.items())

    def __len__(self) -> int:
        return len(self.data)

    def clear(self) -> None:
        self.data.clear()


class UniprotContainer:
    """Cached client of a UniProt annotation service.

    ``/short`` returns light protein records, ``/long`` full UniProt entries and
    ``/go`` GO annotations; every endpoint takes ``POST {"ids": [...]}``.
    """

    def __init__(self, url: str, timeout: float = DEFAULT_TIMEOUT,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url.rstrip('/')
        self.timeout = timeout
        self.transport = transport
        self.tiny: Dict[str, Dict[str, Any]] = {}
        self.full: Dict[str, Dict[str, Any]] = {}

    async def _post(self, endpoint: str, ids: List[str]) -> Any:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(f"{self.url}/{endpoint}", json={'ids': ids})
            response.raise_for_status()
            return response.json()

    async def bulk_tiny(self, *protein_ids: str) -> None:
        missing = [p for p in dict.fromkeys(protein_ids) if p not in self.tiny]
        if not missing:
            return

        logger.info(f"Fetching {len(missing):,} UniProt records")
        for protein in await self._post('short', missing):
            self.tiny[protein['accession']] = protein

    async def get_or_fetch_tiny(self, *protein_ids: str) -> List[Dict[str, Any]]:
        await self.bulk_tiny(*protein_ids)
        return [self.tiny[p] for p in protein_ids if p in self.tiny]

    def get_tiny(self, protein_id: str) -> Optional[Dict[str, Any]]:
        """Cached light record; never hits the network"""
        return self.tiny.get(protein_id)

    async def get_full_protein(self, protein_id: str) -> Optional[Dict[str, Any]]:
        if protein_id not in self.full:
            for protein in await self._post('long', [protein_id]):
                self.full[protein['accession']] = protein
        return self.full.get(protein_id)

    async def fetch_go_terms(self, *protein_ids: str) -> Dict[str, Dict[str, Dict[str, str]]]:
        return await self._post('go', list(protein_ids))

    def search_by_annotation(self, query: Union[str, Pattern]) -> List[str]:
        """Cached proteins whose names, gene names or keywords match ``query``"""
        pattern = re.compile(query) if isinstance(query, str) else query
        matching = []
        for protein_id, protein in self.tiny.items():
            values = (protein.get('protein_names', []) + protein.get('gene_names', [])
                      + protein.get('keywords', []))
            if any(pattern.search(value) for value in values):
                matching.append(protein_id)
        return matching

    def clear(self) -> None:
        self.tiny.clear()
        self.full.clear()
