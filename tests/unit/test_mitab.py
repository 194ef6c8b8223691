"""
Unit tests for MITAB parsing and the record store
"""

import gzip
import json
import logging
import pytest

from interonet.mitab import MitabField, MitabParseError, MitabRecord, MitabStore


@pytest.mark.mitab
class TestMitabField:
    """Test the type:"value"(annotation) token grammar"""

    def test_full_field(self):
        field = MitabField('psi-mi:"MI:0018"(two hybrid)')
        assert field.type == "psi-mi:"
        assert field.value == "MI:0018"
        assert field.annotation == "two hybrid"

    def test_typed_value(self):
        field = MitabField("uniprotkb:P12345")
        assert field.type == "uniprotkb:"
        assert field.value == "P12345"
        assert field.annotation is None

    def test_taxon_with_annotation(self):
        field = MitabField("taxid:9606(human)")
        assert field.value == "9606"
        assert field.annotation == "human"

    def test_bare_value(self):
        field = MitabField("-")
        assert field.type is None
        assert field.value == "-"

    def test_str(self):
        assert str(MitabField('psi-mi:"MI:0018"(two hybrid)')) == 'psi-mi:"MI:0018"(two hybrid)'


@pytest.mark.mitab
class TestMitabRecord:
    """Test MitabRecord parsing and accessors"""

    def test_fifteen_columns(self, make_mitab_line):
        record = MitabRecord(make_mitab_line("P12345", "Q67890"))

        assert len(record) == 15
        assert record.ids == ("P12345", "Q67890")
        assert record.taxid == ("9606", "9606")
        assert record.species == record.taxid
        assert record.pmid == "10000"
        assert record.source == "IntAct"
        assert record.interaction_detection_method == "MI:0018"

    def test_forty_two_columns(self, make_mitab_line):
        line = make_mitab_line("P12345", "Q67890") + "\t" + "\t".join(["-"] * 27)
        record = MitabRecord(line)
        assert len(record) == 42

    def test_wrong_column_count(self, make_mitab_line):
        """A 14-column line is rejected, naming the field count"""
        line = "\t".join(make_mitab_line("P12345", "Q67890").split("\t")[:14])

        with pytest.raises(MitabParseError, match=r"\[14\]"):
            MitabRecord(line)

    def test_parse_error_is_value_error(self):
        with pytest.raises(ValueError):
            MitabRecord("uniprotkb:P12345\tuniprotkb:Q67890")

    def test_consecutive_tabs_collapse(self, make_mitab_line):
        line = make_mitab_line("P12345", "Q67890").replace("\t", "\t\t", 1)
        assert len(MitabRecord(line)) == 15

    def test_identity_by_raw_line(self, make_mitab_line):
        """Records of the same line are equal, different lines are not"""
        a = MitabRecord(make_mitab_line("P12345", "Q67890"))
        b = MitabRecord(make_mitab_line("P12345", "Q67890"))
        c = MitabRecord(make_mitab_line("P12345", "Q67890", pmid="pubmed:99"))

        assert a == b
        assert hash(a) == hash(b)
        assert a != c

    def test_keep_raw(self, make_mitab_line):
        line = make_mitab_line("P12345", "Q67890")
        assert MitabRecord(line, keep_raw=True).raw == line
        assert MitabRecord(line).raw is None

    def test_full_species(self, make_mitab_line):
        record = MitabRecord(make_mitab_line("P12345", "Q67890", tax_b="taxid:10090(mouse)|taxid:10090(Mus musculus)"))
        assert record.full_species == ("human", "Mus musculus")

    def test_uniprot_pair_sorted(self, make_mitab_line):
        record = MitabRecord(make_mitab_line("Q67890", "P12345"))
        assert record.uniprot_pair == ("P12345", "Q67890")

    def test_uniprot_pair_unresolved(self, make_mitab_line):
        record = MitabRecord(make_mitab_line("EBI-12", "P12345"))
        assert record.uniprot_pair is None

    def test_create(self):
        """Synthesized records carry the given methods, taxa and publications"""
        record = MitabRecord.create("P12345", "Q67890", ["taxid:9606"], ["0018"], ["pubmed:42"])

        assert record.ids == ("P12345", "Q67890")
        assert record.interaction_detection_method == "MI:0018"
        assert record.taxid == ("9606", "9606")
        assert record.pmid == "42"

    def test_to_dict(self, make_mitab_line):
        record = MitabRecord(make_mitab_line("P12345", "Q67890"))
        data = record.to_dict()

        assert data["idA"] == 'uniprotkb:"P12345"'
        assert data["interactionDetectionMethod"] == 'psi-mi:"MI:0018"(two hybrid)'
        assert json.loads(record.to_json()) == data


@pytest.mark.mitab
class TestMitabStore:
    """Test MitabStore indexing"""

    def test_read_lines(self, mitab_store):
        assert len(mitab_store) == 3
        assert mitab_store.has("Q67890")
        assert mitab_store.has_couple("Q67890", "P12345")
        assert not mitab_store.has_couple("P12345", "O43521")

    def test_comments_and_blank_lines_skipped(self, make_mitab_line):
        store = MitabStore()
        parsed = store.read_lines(["# header", "", make_mitab_line("P12345", "Q67890")])
        assert len(parsed) == 1

    def test_duplicate_lines_stored_once(self, make_mitab_line):
        store = MitabStore()
        line = make_mitab_line("P12345", "Q67890")
        store.read_lines([line, line])

        assert len(store.get_couple("Q67890", "P12345")) == 1

    def test_multiple_records_per_pair(self, make_mitab_line):
        store = MitabStore()
        store.read_lines([make_mitab_line("P12345", "Q67890"),
                          make_mitab_line("Q67890", "P12345", pmid="pubmed:2")])

        assert len(store) == 1
        assert len(store.get_couple("P12345", "Q67890")) == 2

    def test_get_protein(self, mitab_store):
        records = mitab_store.get("Q67890")
        assert len(records) == 2
        assert mitab_store.get("unknown") == []

    def test_couples_cover_every_pair(self, mitab_store):
        pairs = {frozenset((a, b)) for a, b, _ in mitab_store.couples()}
        assert pairs == {frozenset(("P12345", "Q67890")), frozenset(("Q67890", "P00123")),
                         frozenset(("P00123", "O43521"))}

    def test_publication_source_conflict(self, make_mitab_line, caplog):
        """The same publication from two databases is kept but reported"""
        store = MitabStore()
        with caplog.at_level(logging.WARNING):
            store.read_lines([
                make_mitab_line("P12345", "Q67890"),
                make_mitab_line("P12345", "P00123", source='psi-mi:"MI:0463"(BioGRID)'),
            ])

        assert "already been fetched from intact" in caplog.text
        assert store.publications["10000"] == "intact"
        assert len(store) == 2

    def test_read_gzip(self, tmp_path, sample_mitab_lines):
        path = tmp_path / "evidence.mitab.gz"
        with gzip.open(path, "wt") as f:
            f.write("\n".join(sample_mitab_lines))

        store = MitabStore()
        assert store.read(path) == 3
        assert len(store) == 3

    def test_read_file(self, sample_files):
        store = MitabStore()
        assert store.read(sample_files['mitab']) == 4
        assert len(store) == 3

    def test_plus(self, mitab_store, make_mitab_line):
        other = MitabStore()
        other.read_lines([make_mitab_line("P12345", "Q67890"), make_mitab_line("P12345", "O43521")])

        mitab_store.plus(other)

        assert len(mitab_store) == 4
        assert len(mitab_store.get_couple("P12345", "Q67890")) == 1

    def test_partner_views(self, mitab_store):
        partners = mitab_store.all_partner_pairs()
        assert partners["Q67890"] == ["P00123", "P12345"]

        paired = mitab_store.all_lines_paired()
        assert paired["P12345"]["Q67890"] == paired["Q67890"]["P12345"]
        assert paired["P12345"]["Q67890"][0].startswith("uniprotkb:P12345")

    def test_flush_raw(self, mitab_store):
        mitab_store.flush_raw()
        assert all(record.raw is None for record in mitab_store)

    def test_pmids(self, mitab_store):
        assert mitab_store.pmids() == {"10000", "20000", "30000"}

    def test_to_json(self, mitab_store):
        payload = json.loads(mitab_store.to_json())
        assert payload["type"] == "mitabResult"
        assert len(payload["data"]) == 3

    def test_topology(self, mitab_store, make_mitab_line):
        mitab_store.read_lines([make_mitab_line("EBI-1", "P12345")])
        nodes, edges = mitab_store.topology()

        assert nodes == {"P12345", "Q67890", "P00123", "O43521"}
        assert set(edges) == {("P12345", "Q67890"), ("P00123", "Q67890"), ("O43521", "P00123")}

    def test_filter_by_uniprot(self, mitab_store):
        subset = mitab_store.filter(["P12345"])
        assert len(subset) == 1
        assert subset.has_couple("P12345", "Q67890")

    def test_filter_by_predicate(self, mitab_store):
        subset = mitab_store.filter(predicate=lambda r: r.interaction_detection_method == "MI:0676")
        assert len(subset) == 1
        assert subset.has_couple("P00123", "Q67890")

    def test_clear(self, mitab_store):
        mitab_store.clear()
        assert len(mitab_store) == 0
        assert mitab_store.publications == {}
