"""
Pytest configuration and fixtures for InteroNet tests
"""

import json
import pytest

from interonet.graph import InteractomeGraph
from interonet.homology import HomologyIndex
from interonet.mitab import MitabStore


def hit(total=100, start=1, end=100, similar=80, identical=60, e_value="1e-30"):
    """Raw hit vector as stored in a homology index file"""
    return [str(total), str(start), str(end), "1", str(end - start + 1), str(total),
            str(similar), str(identical), e_value]


def mitab_line(id_a, id_b, method='psi-mi:"MI:0018"(two hybrid)', pmid="pubmed:10000",
               tax_a="taxid:9606(human)", tax_b="taxid:9606(human)",
               source='psi-mi:"MI:0469"(IntAct)'):
    """A 15-column MITAB line"""
    cells = [
        f"uniprotkb:{id_a}", f"uniprotkb:{id_b}", "-", "-", "-", "-", method,
        "Doe et al. (2005)", pmid, tax_a, tax_b,
        'psi-mi:"MI:0915"(physical association)', source, "intact:EBI-1", "intact-miscore:0.56",
    ]
    return "\t".join(cells)


@pytest.fixture
def make_hit():
    return hit


@pytest.fixture
def make_mitab_line():
    return mitab_line


@pytest.fixture
def sample_mitab_lines():
    """Reference-organism interactions forming the chain P12345 - Q67890 - P00123 - O43521"""
    return [
        mitab_line("P12345", "Q67890"),
        mitab_line("Q67890", "P00123", method='psi-mi:"MI:0676"(tandem affinity purification)',
                   pmid="pubmed:20000", tax_b="taxid:10090(mouse)"),
        mitab_line("P00123", "O43521", pmid="pubmed:30000"),
    ]


@pytest.fixture
def sample_homology_data():
    """Homologs of the reference proteins in the target organism"""
    return {
        "P12345": {"T1": [hit()], "T2": [hit(similar=20, identical=10)]},
        "Q67890": {"T3": [hit(), hit(similar=1)]},
        "P00123": {"T4": [hit(total=400)]},
        "O43521": {"T5": [hit(e_value="1e-2")]},
    }


@pytest.fixture
def homology_index(sample_homology_data):
    return HomologyIndex(sample_homology_data, taxid="1299")


@pytest.fixture
def mitab_store(sample_mitab_lines):
    store = MitabStore(keep_raw=True)
    store.read_lines(sample_mitab_lines)
    return store


@pytest.fixture
def built_graph(homology_index, mitab_store):
    """Graph built from the sample evidence, with evidence linked and view constructed"""
    interactome = InteractomeGraph(homology_index, mitab_store)
    interactome.build_edges()
    interactome.link_mitab_records()
    interactome.construct_graph(True)
    return interactome


@pytest.fixture
def chain_graph():
    """Target-organism path S - A - B - C, plus an isolated edge X - Y"""
    interactome = InteractomeGraph()
    for left, right in [("S", "A"), ("A", "B"), ("B", "C"), ("X", "Y")]:
        interactome.add_edge_set({left: [f"ref_{left}", *hit()]}, {right: [f"ref_{right}", *hit()]})
    interactome.construct_graph(True)
    return interactome


@pytest.fixture
def sample_files(tmp_path, sample_mitab_lines, sample_homology_data):
    """MITAB and homology index files on disk"""
    mitab_file = tmp_path / "reference.mitab"
    mitab_file.write_text("# idA\tidB\n" + "\n".join(sample_mitab_lines) + "\n")

    homology_file = tmp_path / "homology.json"
    homology_file.write_text(json.dumps({"data": sample_homology_data, "taxid": "1299", "version": 2}))

    return {'mitab': mitab_file, 'homology': homology_file, 'dir': tmp_path}
