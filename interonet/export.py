"""
Network export and filtering of the materialized interactome
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

import networkx as nx
import pandas as pd

from .graph import InteractomeGraph

logger = logging.getLogger(__name__)


class ExportFilter:
    """Filtering criteria applied to the visible graph before export"""

    def __init__(self):
        self.min_degree: Optional[int] = None
        self.max_degree: Optional[int] = None
        self.min_depth: Optional[int] = None  # minimum number of valid supports per edge

    @classmethod
    def well_supported(cls, min_depth: int = 2) -> 'ExportFilter':
        """Only edges backed by several homolog pairs"""
        filter_obj = cls()
        filter_obj.min_depth = min_depth
        return filter_obj

    @classmethod
    def hubs(cls, min_degree: int = 10) -> 'ExportFilter':
        filter_obj = cls()
        filter_obj.min_degree = min_degree
        return filter_obj


class NetworkExporter:
    """Export the visible part of an InteractomeGraph"""

    def __init__(self, output_dir: Path = Path("outputs")):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def export_network(self, interactome: InteractomeGraph,
                       export_filter: Optional[ExportFilter] = None,
                       format_types: List[str] = ['json', 'graphml', 'csv'],
                       filename_prefix: str = 'interactome') -> Dict[str, Path]:
        """Export the current view in the requested formats"""
        graph = self._build_export_graph(interactome, export_filter or ExportFilter())

        logger.info(f"Exporting network: {graph.number_of_nodes()} proteins, "
                    f"{graph.number_of_edges()} interactions")

        output_files = {}

        if 'json' in format_types:
            output_files['json'] = self._export_json(graph, filename_prefix)

        if 'graphml' in format_types:
            output_files['graphml'] = self._export_graphml(graph, filename_prefix)

        if 'csv' in format_types:
            output_files.update(self._export_csv(graph, filename_prefix))

        return output_files

    def _build_export_graph(self, interactome: InteractomeGraph,
                            export_filter: ExportFilter) -> nx.Graph:
        """Flatten edge supports into plain attributes and apply the filter"""
        graph = nx.Graph()

        for node, data in interactome.graph.nodes(data=True):
            graph.add_node(node, **{
                'group': data.get('group', 0),
                'gene_names': data.get('gene_names', []),
                'protein_names': data.get('protein_names', []),
            })

        for u, v, data in interactome.graph.edges(data=True):
            support = data['support']
            depth = support.depth
            if export_filter.min_depth is not None and depth < export_filter.min_depth:
                continue

            low_templates, high_templates = support.templates
            detection_methods = sorted({r.interaction_detection_method
                                        for _, _, records in support.full_iterator(True)
                                        for r in records})
            graph.add_edge(u, v,
                           depth=depth,
                           templates=[f"{a}~{b}" for a, b in zip(low_templates, high_templates)],
                           detection_methods=detection_methods)

        if export_filter.min_degree is not None or export_filter.max_degree is not None:
            degrees = dict(graph.degree())
            for node, degree in degrees.items():
                if export_filter.min_degree is not None and degree < export_filter.min_degree:
                    graph.remove_node(node)
                elif export_filter.max_degree is not None and degree > export_filter.max_degree:
                    graph.remove_node(node)

        graph.remove_nodes_from([n for n, degree in dict(graph.degree()).items() if degree == 0])

        for node, degree in graph.degree():
            graph.nodes[node]['degree'] = degree

        return graph

    def _export_json(self, graph: nx.Graph, filename_prefix: str) -> Path:
        """Export graph as JSON"""
        output_file = self.output_dir / f"{filename_prefix}.json"

        data = nx.node_link_data(graph, edges="links")

        with open(output_file, 'w') as f:
            json.dump(data, f, indent=2, default=str)

        logger.info(f"Exported JSON network: {output_file}")
        return output_file

    def _export_graphml(self, graph: nx.Graph, filename_prefix: str) -> Path:
        """Export graph as GraphML"""
        output_file = self.output_dir / f"{filename_prefix}.graphml"

        graphml_graph = graph.copy()

        # GraphML only takes scalar attributes
        for _, data in graphml_graph.nodes(data=True):
            for key, value in data.items():
                if isinstance(value, (list, dict)):
                    data[key] = '|'.join(value) if isinstance(value, list) else str(value)

        for _, _, data in graphml_graph.edges(data=True):
            for key, value in data.items():
                if isinstance(value, (list, dict)):
                    data[key] = '|'.join(value) if isinstance(value, list) else str(value)

        nx.write_graphml(graphml_graph, output_file)
        logger.info(f"Exported GraphML network: {output_file}")
        return output_file

    def _export_csv(self, graph: nx.Graph, filename_prefix: str) -> Dict[str, Path]:
        """Export nodes and edges as CSV files"""
        nodes_file = self.output_dir / f"{filename_prefix}_nodes.csv"
        nodes_data = []

        for node, data in graph.nodes(data=True):
            nodes_data.append({
                'protein': node,
                'degree': data.get('degree', 0),
                'group': data.get('group', 0),
                'gene_names': '|'.join(data.get('gene_names', [])),
                'protein_names': '|'.join(data.get('protein_names', [])),
            })

        pd.DataFrame(nodes_data, columns=['protein', 'degree', 'group', 'gene_names',
                                          'protein_names']).to_csv(nodes_file, index=False)

        edges_file = self.output_dir / f"{filename_prefix}_edges.csv"
        edges_data = []

        for u, v, data in graph.edges(data=True):
            edges_data.append({
                'protein1': u,
                'protein2': v,
                'depth': data['depth'],
                'templates': '|'.join(data['templates']),
                'detection_methods': '|'.join(data['detection_methods']),
            })

        pd.DataFrame(edges_data, columns=['protein1', 'protein2', 'depth', 'templates',
                                          'detection_methods']).to_csv(edges_file, index=False)

        logger.info(f"Exported CSV files: {nodes_file}, {edges_file}")
        return {'nodes_csv': nodes_file, 'edges_csv': edges_file}
