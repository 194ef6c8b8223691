"""
Interolog network construction, trimming, pruning and serialization
"""

import json
import logging
import math
import time
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set, Tuple, Union

import networkx as nx

from .homology import HomologChildren, HomologyIndex, UnsupportedVersionError
from .mitab import MitabRecord, MitabStore
from .pairstore import RankedPairStore, SymmetricPairStore, key_digest
from .services import GoTermsContainer, PartnerService, UniprotContainer
from .support import HomologParameter, HomologParameterSet, MitabLink, TrimCriteria

logger = logging.getLogger(__name__)

SERIALIZATION_VERSION = 1.1
SUPPORTED_VERSIONS = (1, 1.1)


class InteractomeGraph:
    """Interolog network of a target organism.

    Candidate edges live in ``adjacency`` (homolog pair -> HomologParameterSet), built by
    projecting the interaction evidence of ``mitab`` through ``homology``. ``graph`` is the
    networkx view of the visible, non-empty edges; its edges reference the same
    HomologParameterSet objects as ``adjacency``.
    """

    def __init__(self, homology: Optional[HomologyIndex] = None,
                 mitab: Optional[MitabStore] = None,
                 uniprot_url: Optional[str] = None,
                 taxid: Optional[str] = None):
        self.homology = homology
        self.mitab = mitab if mitab is not None else MitabStore()
        self.adjacency: SymmetricPairStore[HomologParameterSet] = SymmetricPairStore()
        self.graph = nx.Graph()
        self.taxid = taxid if taxid is not None else (homology.taxid if homology else None)
        self.last_trim: Optional[Dict[str, float]] = None
        self.mitab_loaded = False
        self.go_terms = GoTermsContainer()
        self.uniprot = UniprotContainer(uniprot_url) if uniprot_url else None

    # Iteration

    def __iter__(self) -> Iterator[Tuple[str, str, HomologParameterSet]]:
        """Every stored edge, visible or not"""
        return iter(self.adjacency)

    def __len__(self) -> int:
        return len(self.adjacency)

    def iter_visible(self) -> Iterator[Tuple[str, str, HomologParameterSet]]:
        for k1, k2, parameter_set in self:
            if not parameter_set.is_empty and parameter_set.visible:
                yield k1, k2, parameter_set

    def template_pairs(self) -> Iterator[Tuple[HomologParameter, HomologParameter]]:
        for _, _, parameter_set in self:
            yield from parameter_set

    # Edge construction

    def _children(self, protein_id: str) -> HomologChildren:
        return self.homology.children_data(protein_id)

    def add_edge_set(self, homologs_a: HomologChildren,
                     homologs_b: HomologChildren) -> List[HomologParameterSet]:
        """Add the cross product of two homolog maps to the adjacency store.

        The side whose homolog id has the smaller digest becomes the low parameter.
        """
        elements_a = [(key_digest(k), k, v) for k, v in homologs_a.items()]
        elements_b = [(key_digest(k), k, v) for k, v in homologs_b.items()]
        added = []

        for hash_a, id_a, data_a in elements_a:
            for hash_b, id_b, data_b in elements_b:
                low, high = (data_a, data_b) if hash_a < hash_b else (data_b, data_a)

                parameter_set = self.adjacency.get(id_a, id_b)
                if parameter_set is None:
                    parameter_set = HomologParameterSet()
                    self.adjacency.set(id_a, id_b, parameter_set)

                parameter_set.add(low, high)
                added.append(parameter_set)

        return added

    def build_edges(self) -> int:
        """Build edges from every pair of the interaction-evidence store"""
        if self.homology is None:
            raise ValueError("InteractomeGraph has no homology index to build edges from")

        n_base = 0
        for base_a, base_b, _ in self.mitab.couples():
            self.add_edge_set(self._children(base_a), self._children(base_b))
            n_base += 1

        logger.info(f"{self.edge_count:,} interactions unpacked from {n_base:,}")
        return n_base

    async def build_edges_from_partners(self, partner_service: PartnerService,
                                        packet_size: Optional[int] = None) -> int:
        """Build edges from a partner-lookup service queried with the homology index keys.

        The service may report a relation from both sides; follow with
        ``trim_edges(TrimCriteria.deduplicate())``.
        """
        if self.homology is None:
            raise ValueError("InteractomeGraph has no homology index to build edges from")

        start = time.time()
        n_relations = 0

        async for page in partner_service.bulk_get(self.homology, packet_size):
            for protein_id, entry in page.items():
                for partner in entry.get('partners', []):
                    self.add_edge_set(self._children(protein_id), self._children(partner))
                    n_relations += 1
            logger.debug(f"Partner page processed ({len(page)} proteins)")

        logger.info(f"{n_relations:,} partner relations unpacked in {time.time() - start:.2f} seconds")
        return n_relations

    # Filtering

    def trim_edges(self, criteria: Optional[TrimCriteria] = None,
                   logged_id: Optional[str] = None) -> Tuple[int, int, List[Dict[str, Any]]]:
        """Trim every edge; returns (emptied edges, total edges, logged explanations)"""
        criteria = criteria or TrimCriteria()
        n_del = 0
        n_tot = 0
        logged = []
        emptied = []

        for x, y, parameter_set in self:
            is_logged = logged_id is not None and logged_id in (x, y)
            n_tot += 1

            reasons = parameter_set.trim(criteria.with_explain(criteria.explain or is_logged))

            if parameter_set.is_empty:
                n_del += 1

                if is_logged:
                    own, partner = (0, 1) if logged_id == x else (1, 0)
                    logged.append({
                        'x': x,
                        'y': y,
                        'logged': [r[own] for r in reasons],
                        'partner': [r[partner] for r in reasons],
                    })

                if criteria.persist:
                    emptied.append((x, y))

        for x, y in emptied:
            self.adjacency.remove(x, y)

        self.last_trim = criteria.thresholds()
        logger.info(f"Trim removed {n_del:,} of {n_tot:,} edges ({criteria!r})")
        return n_del, n_tot, logged

    # Graph view

    def construct_graph(self, annotate_degree: bool = False) -> nx.Graph:
        """Make every edge visible again (undo a prune) and rebuild the view"""
        for _, _, parameter_set in self:
            parameter_set.visible = True

        self.graph = self._make_graph(annotate_degree)
        return self.graph

    def _make_graph(self, annotate_degree: bool = False) -> nx.Graph:
        graph = nx.Graph()

        for n1, n2, parameter_set in self.iter_visible():
            if graph.has_edge(n1, n2):
                continue
            for node in (n1, n2):
                if node not in graph:
                    graph.add_node(node, group=0, val=0)
            graph.add_edge(n1, n2, support=parameter_set)

        if annotate_degree:
            self._annotate_degree(graph)
        return graph

    @staticmethod
    def _annotate_degree(graph: nx.Graph) -> None:
        for node, degree in graph.degree():
            graph.nodes[node]['val'] = degree

    def _neighbourhood(self, node: str, cutoff: Optional[int]) -> Set[str]:
        if node not in self.graph:
            return set()
        return set(nx.single_source_shortest_path_length(self.graph, node, cutoff=cutoff))

    def prune(self, max_distance: Optional[float] = 5, *seeds: str) -> nx.Graph:
        """Keep the nodes within ``max_distance`` hops of any seed.

        A None, negative or infinite distance keeps each seed's whole component.
        Removed nodes have their edges hidden until the next ``construct_graph()``.
        """
        self.construct_graph()
        logger.info(f"Graph has {self.graph.number_of_nodes():,} nodes and "
                    f"{self.graph.number_of_edges():,} edges")

        t = time.time()
        wanted = set(seeds)
        seed_set = []
        other_set = []

        for node in self.graph.nodes:
            if node in wanted:
                self.graph.nodes[node]['group'] = 1
                seed_set.append(node)
            else:
                other_set.append(node)

        for seed in wanted.difference(seed_set):
            logger.warning(f"Seed {seed} is not part of the graph")

        if not seeds:
            logger.warning("No seed to prune")
        else:
            unbounded = max_distance is None or max_distance < 0 or math.isinf(max_distance)
            cutoff = None if unbounded else int(max_distance)

            kept: Set[str] = set()
            for seed in seed_set:
                if unbounded and seed in kept:
                    continue
                kept.update(self._neighbourhood(seed, cutoff))

            for node in other_set:
                if node not in kept:
                    self.graph.remove_node(node)
                    self.hide_node(node)

        logger.info(f"Paths found in {time.time() - t:.2f} seconds")

        self._annotate_degree(self.graph)
        return self.graph

    def show_node(self, node: str) -> None:
        for parameter_set in self.adjacency.get_node(node).values():
            parameter_set.visible = True

    def hide_node(self, node: str) -> None:
        for parameter_set in self.adjacency.get_node(node).values():
            parameter_set.visible = False

    # Manually asserted edges

    def add_artefactual_edge(self, source: str, target: str,
                             support: Optional[List[MitabRecord]] = None) -> None:
        """Add an edge backed by placeholder homology and optional evidence records"""
        if self.adjacency.get(target, source) is not None:
            return

        if self.homology is None:
            self.homology = HomologyIndex(taxid=self.taxid)

        homologs_a, homologs_b = self.homology.add_artefactual(source, target)
        added = self.add_edge_set(homologs_a, homologs_b)

        if support:
            self.mitab.add(*support)
            for parameter_set in added:
                self._link(parameter_set)

        self.construct_graph(True)

    def create_artefactual(self, source: str, target: str,
                           mitabs: Optional[List[Dict[str, Any]]] = None) -> None:
        """``mitabs`` entries take the keyword arguments of ``MitabRecord.create``"""
        support = [MitabRecord.create(**m) for m in mitabs or ()]
        self.add_artefactual_edge(source, target, support)

    # Interaction evidence

    def read(self, lines: Union[Iterable[str], Iterable[List[str]]]) -> int:
        """Register MITAB lines; call ``link_mitab_records()`` once everything is read"""
        lines = list(lines)
        flat: List[str] = []
        for line in lines:
            if isinstance(line, str):
                flat.append(line)
            else:
                flat.extend(line)

        self.mitab.read_lines(flat)
        return len(lines)

    def _link(self, parameter_set: HomologParameterSet) -> None:
        parameter_set.mitab_links = [
            [MitabLink(record) for record in self.mitab.get_couple(low.template, high.template)]
            for low, high in parameter_set
        ]

    def link_mitab_records(self) -> None:
        for _, _, parameter_set in self:
            self._link(parameter_set)
        self.mitab_loaded = True

    @property
    def visible_detection_methods(self) -> Set[str]:
        methods = set()
        for _, _, parameter_set in self.iter_visible():
            for _, _, records in parameter_set.full_iterator(True):
                methods.update(r.interaction_detection_method for r in records)
        return methods

    @property
    def visible_taxa(self) -> Set[str]:
        taxa = set()
        for _, _, parameter_set in self.iter_visible():
            for _, _, records in parameter_set.full_iterator(True):
                for record in records:
                    taxa.update(record.taxid)
        return taxa

    # Graph information

    def _template_store(self, from_visible: bool) -> RankedPairStore:
        store: RankedPairStore[bool] = RankedPairStore()
        source = self.iter_visible() if from_visible else iter(self)

        for _, _, parameter_set in source:
            lows, highs = parameter_set.templates if from_visible else parameter_set.full_templates
            for t1, t2 in zip(lows, highs):
                if not store.has_couple(t1, t2):
                    store.add(t1, t2, True)
        return store

    def unique_template_pairs(self, from_visible: bool = False) -> List[Tuple[str, str]]:
        """Template pairs without duplicates in either orientation"""
        return [(t1, t2) for t1, t2, _ in self._template_store(from_visible)]

    def template_ranking(self, limit: Optional[int] = None,
                         from_visible: bool = False) -> List[Tuple[str, int]]:
        """Templates by number of distinct template pairs they take part in"""
        return self._template_store(from_visible).rank(limit)

    @property
    def edge_count(self) -> int:
        return sum(1 for _ in self.iter_visible())

    @property
    def node_count(self) -> int:
        return self.graph.number_of_nodes()

    @property
    def nodes(self) -> List[Tuple[str, Dict[str, Any]]]:
        return list(self.graph.nodes(data=True))

    @property
    def links(self) -> List[Tuple[Tuple[str, str], HomologParameterSet]]:
        return [((u, v), data['support']) for u, v, data in self.graph.edges(data=True)]

    @property
    def homology_length(self) -> int:
        return len(self.homology) if self.homology is not None else 0

    # Annotation

    async def download_annotations(self) -> None:
        """Fetch UniProt records for every node of the current view and attach them"""
        if self.uniprot is None:
            raise ValueError("No UniProt service configured")

        nodes = list(self.graph.nodes)
        await self.uniprot.bulk_tiny(*nodes)

        for node in nodes:
            protein = self.uniprot.get_tiny(node)
            if protein:
                self.graph.nodes[node]['gene_names'] = protein.get('gene_names', [])
                self.graph.nodes[node]['protein_names'] = protein.get('protein_names', [])

    async def download_go_terms(self, *protein_ids: str) -> None:
        if self.uniprot is None:
            raise ValueError("No UniProt service configured")

        terms = await self.uniprot.fetch_go_terms(*(protein_ids or tuple(self.graph.nodes)))
        self.go_terms.add(terms)

    # Serialization

    def _graph_dump(self, edge_value=None) -> Dict[str, Any]:
        view = nx.Graph()
        view.add_nodes_from(self.graph.nodes(data=True))
        for u, v, data in self.graph.edges(data=True):
            if edge_value is None:
                view.add_edge(u, v)
            else:
                view.add_edge(u, v, value=edge_value(data['support']))
        return nx.node_link_data(view, edges="links")

    def dump_graph(self, trim_invalid: bool = True) -> str:
        """JSON node-link dump of the view, edges carrying their support"""
        encode = (lambda s: s.valid_view()) if trim_invalid else (lambda s: s.to_dict())
        return json.dumps(self._graph_dump(encode))

    def to_dict(self, with_homology: bool = True) -> Dict[str, Any]:
        obj = {
            'graph': self._graph_dump(),
            'tree': self.adjacency.to_dict(lambda s: s.to_dict()),
            'taxid': self.taxid,
            'last_trim': self.last_trim,
            'version': SERIALIZATION_VERSION,
        }

        if with_homology and self.homology is not None:
            obj['homolog'] = self.homology.to_dict()

        return obj

    def serialize(self, with_homology: bool = True) -> str:
        """Whole-object JSON; omit the homology index once all edges are built"""
        return json.dumps(self.to_dict(with_homology))

    @staticmethod
    def check_serialized(obj: Any) -> None:
        if not isinstance(obj, dict) or not {'version', 'tree', 'graph'}.issubset(obj):
            raise ValueError("Object is not a serialized InteractomeGraph")

        if obj['version'] not in SUPPORTED_VERSIONS:
            raise UnsupportedVersionError(f"Unsupported InteractomeGraph version: {obj['version']}")

    @classmethod
    def from_serialized(cls, serialized: Union[str, Dict[str, Any]],
                        mitab: Optional[MitabStore] = None,
                        uniprot_url: Optional[str] = None) -> 'InteractomeGraph':
        obj = json.loads(serialized) if isinstance(serialized, str) else serialized
        cls.check_serialized(obj)

        tree = obj['tree']
        adjacency = SymmetricPairStore.from_dict(
            json.loads(tree) if isinstance(tree, str) else tree,
            HomologParameterSet.from_dict,
        )

        graph = nx.node_link_graph(obj['graph'], edges="links")
        for u, v in list(graph.edges):
            support = adjacency.get(u, v)
            if support is None:
                graph.remove_edge(u, v)
                continue
            graph.edges[u, v].clear()
            graph.edges[u, v]['support'] = support

        homology = HomologyIndex.from_serialized(obj['homolog']) if obj.get('homolog') else None

        instance = cls(homology, mitab, uniprot_url, taxid=obj.get('taxid'))
        instance.adjacency = adjacency
        instance.graph = graph
        instance.last_trim = obj.get('last_trim')
        return instance

    def save(self, file_path: Path, with_homology: bool = True) -> Path:
        file_path = Path(file_path)
        with open(file_path, 'w') as f:
            f.write(self.serialize(with_homology))
        logger.info(f"Saved interactome ({len(self):,} edges) to {file_path}")
        return file_path

    @classmethod
    def load(cls, file_path: Path, mitab: Optional[MitabStore] = None) -> 'InteractomeGraph':
        with open(file_path) as f:
            instance = cls.from_serialized(f.read(), mitab)
        logger.info(f"Loaded interactome ({len(instance):,} edges) from {file_path}")
        return instance

    def __str__(self) -> str:
        return json.dumps([[k1, k2, s.valid_view()] for k1, k2, s in self.iter_visible()])
