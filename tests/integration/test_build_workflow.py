"""
Integration tests for the build, trim, prune and export workflow
"""

import asyncio
import json
import httpx
import pytest
import pandas as pd

from interonet.export import ExportFilter, NetworkExporter
from interonet.graph import InteractomeGraph
from interonet.homology import HomologyIndex
from interonet.mitab import MitabStore
from interonet.services import PartnerService, UniprotContainer
from interonet.support import TaxonMode, TrimCriteria


@pytest.mark.integration
class TestBuildWorkflow:
    """Full pipeline over the sample files"""

    def test_file_to_export(self, sample_files, tmp_path):
        mitab = MitabStore()
        mitab.read(sample_files['mitab'])
        index = HomologyIndex.from_file(sample_files['homology'])

        interactome = InteractomeGraph(index, mitab)
        interactome.build_edges()
        interactome.link_mitab_records()
        interactome.construct_graph(True)
        assert interactome.edge_count == 4

        n_del, n_tot, _ = interactome.trim_edges(TrimCriteria(min_similarity=50, detection_methods={"MI:0018"}))
        assert (n_del, n_tot) == (2, 4)

        interactome.construct_graph(True)
        assert set(interactome.graph.nodes) == {"T1", "T3", "T4", "T5"}

        view = interactome.prune(1, "T1")
        assert set(view.nodes) == {"T1", "T3"}

        files = NetworkExporter(tmp_path / "out").export_network(interactome, format_types=['csv'])
        edges = pd.read_csv(files['edges_csv'])
        assert len(edges) == 1
        assert edges.iloc[0]['detection_methods'] == "MI:0018"

    def test_save_reload_and_retrim(self, sample_files, tmp_path):
        """A reloaded light graph can be relinked and trimmed again"""
        mitab = MitabStore()
        mitab.read(sample_files['mitab'])
        interactome = InteractomeGraph(HomologyIndex.from_file(sample_files['homology']), mitab)
        interactome.build_edges()
        interactome.link_mitab_records()
        interactome.trim_edges(TrimCriteria(min_coverage=50))
        interactome.construct_graph(True)

        path = interactome.save(tmp_path / "light.json", with_homology=False)
        assert json.loads(path.read_text())['last_trim']['coverage'] == 50

        reloaded = InteractomeGraph.load(path, mitab)
        assert reloaded.edge_count == 2
        assert reloaded.taxid == "1299"

        reloaded.link_mitab_records()
        reloaded.trim_edges(TrimCriteria(taxa={"9606", "10090"}, taxon_mode=TaxonMode.ALL))
        reloaded.construct_graph(True)

        assert reloaded.edge_count == 4
        assert reloaded.node_count == 5

    def test_partner_service_build(self, homology_index):
        """Edges from a partner service match edges from the equivalent MITAB evidence"""
        partners = {
            "P12345": ["Q67890"],
            "Q67890": ["P12345", "P00123"],
            "P00123": ["Q67890", "O43521"],
            "O43521": ["P00123"],
        }

        def handler(request):
            keys = json.loads(request.content)['keys']
            return httpx.Response(200, json={'request': {k: {'partners': partners[k]} for k in keys}})

        service = PartnerService("http://partners.test", packet_size=2, transport=httpx.MockTransport(handler))
        interactome = InteractomeGraph(homology_index)
        asyncio.run(interactome.build_edges_from_partners(service))
        interactome.trim_edges(TrimCriteria.deduplicate())
        interactome.construct_graph(True)

        assert len(interactome) == 4
        assert all(s.depth == 1 for _, _, s in interactome)
        assert interactome.node_count == 5

    def test_annotated_export(self, built_graph, tmp_path):
        def handler(request):
            ids = json.loads(request.content)['ids']
            return httpx.Response(200, json=[
                {"accession": i, "gene_names": [f"gene{i}"], "protein_names": [f"Protein {i}"]} for i in ids
            ])

        built_graph.uniprot = UniprotContainer("http://uniprot.test", transport=httpx.MockTransport(handler))
        asyncio.run(built_graph.download_annotations())

        files = NetworkExporter(tmp_path).export_network(built_graph, ExportFilter.hubs(min_degree=1),
                                                         format_types=['csv'])
        nodes = pd.read_csv(files['nodes_csv']).set_index('protein')

        assert nodes.loc["T3", 'gene_names'] == "geneT3"
        assert nodes.loc["T3", 'degree'] == 3

    def test_manual_edge_joins_network(self, built_graph):
        built_graph.create_artefactual("T5", "T9", [
            {"id1": "T5", "id2": "T9", "tax_ids": ["taxid:1299"], "mi_ids": ["0018"], "pubmed_ids": ["pubmed:7"]},
        ])

        view = built_graph.prune(None, "T1")
        assert "T9" in view
        assert built_graph.homology_length == 6

        n_del, _, _ = built_graph.trim_edges(TrimCriteria(taxa={"1299"}))
        assert n_del == 4
